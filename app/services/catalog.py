"""
Catalog Service

Categories, products and stock. Plain CRUD over the async session handed in
by the caller; functions return None when the target row does not exist.

Stock is a simple counter: no reservations and no locking, concurrent
orders can oversell.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Category, Product
from app.schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


# =============================================================================
# CATEGORIES
# =============================================================================

async def list_categories(db: AsyncSession, active_only: bool = False) -> list[Category]:
    query = select(Category).order_by(Category.sort_order, Category.name)
    if active_only:
        query = query.where(Category.is_active.is_(True))
    result = await db.scalars(query)
    return list(result)


async def get_category(db: AsyncSession, category_id: int) -> Optional[Category]:
    return await db.get(Category, category_id)


async def create_category(db: AsyncSession, data: CategoryCreate) -> Category:
    category = Category(**data.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    logger.info(f"Category #{category.id} created: {category.name}")
    return category


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> Optional[Category]:
    category = await db.get(Category, category_id)
    if category is None:
        return None

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(category, field, value)

    await db.commit()
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, category_id: int) -> Optional[list[int]]:
    """
    Delete a category and its products.

    Products are deleted one at a time; a product that cannot be deleted is
    logged and skipped, and the category is deleted anyway.

    Returns:
        Ids of the products that could not be deleted, or None if the
        category does not exist
    """
    category = await db.get(Category, category_id)
    if category is None:
        return None

    product_ids = list(await db.scalars(select(Product.id).where(Product.category_id == category_id)))
    failed: list[int] = []

    for product_id in product_ids:
        try:
            await db.execute(delete(Product).where(Product.id == product_id))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(f"Could not delete product #{product_id} of category #{category_id}: {e}")
            failed.append(product_id)

    if failed:
        # Orphans stay visible under "no category"
        await db.execute(
            Product.__table__.update()
            .where(Product.id.in_(failed))
            .values(category_id=None)
        )

    await db.execute(delete(Category).where(Category.id == category_id))
    await db.commit()
    logger.info(f"Category #{category_id} deleted ({len(product_ids) - len(failed)} product(s) removed)")
    return failed


# =============================================================================
# PRODUCTS
# =============================================================================

async def list_products(
    db: AsyncSession,
    category_id: Optional[int] = None,
    active_only: bool = False,
) -> list[Product]:
    query = select(Product).order_by(Product.sort_order, Product.name)
    if category_id is not None:
        query = query.where(Product.category_id == category_id)
    if active_only:
        query = query.where(Product.is_active.is_(True))
    result = await db.scalars(query)
    return list(result)


async def get_product(db: AsyncSession, product_id: int) -> Optional[Product]:
    return await db.get(Product, product_id)


async def search_products(db: AsyncSession, query: str, limit: int = 20) -> list[Product]:
    """
    Case-insensitive search over product name and description.

    Only active products are returned; an empty query returns nothing.
    """
    term = query.strip()
    if not term:
        return []

    result = await db.scalars(
        select(Product)
        .where(Product.is_active.is_(True))
        .where(or_(
            Product.name.icontains(term, autoescape=True),
            func.coalesce(Product.description, "").icontains(term, autoescape=True),
        ))
        .order_by(Product.name)
        .limit(limit)
    )
    return list(result)


async def create_product(db: AsyncSession, data: ProductCreate) -> Product:
    product = Product(**data.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info(f"Product #{product.id} created: {product.name}")
    return product


async def update_product(db: AsyncSession, product_id: int, data: ProductUpdate) -> Optional[Product]:
    product = await db.get(Product, product_id)
    if product is None:
        return None

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    return product


async def delete_product(db: AsyncSession, product_id: int) -> bool:
    result = await db.execute(delete(Product).where(Product.id == product_id))
    await db.commit()
    return bool(result.rowcount)


async def update_stock(db: AsyncSession, product_id: int, quantity: Optional[int]) -> Optional[Product]:
    """Set the stock counter; None turns stock tracking off."""
    product = await db.get(Product, product_id)
    if product is None:
        return None

    product.stock_quantity = quantity
    await db.commit()
    await db.refresh(product)
    logger.info(f"Stock of product #{product_id} set to {quantity}")
    return product


async def bulk_update_stock(db: AsyncSession, stock: dict[int, Optional[int]]) -> tuple[list[int], list[int]]:
    """
    Set several stock counters in one transaction.

    Returns:
        (updated product ids, unknown product ids)
    """
    products = await db.scalars(select(Product).where(Product.id.in_(list(stock))))
    updated = []
    for product in products:
        product.stock_quantity = stock[product.id]
        updated.append(product.id)

    await db.commit()
    missing = sorted(set(stock) - set(updated))
    logger.info(f"Bulk stock update: {len(updated)} updated, {len(missing)} unknown")
    return sorted(updated), missing
