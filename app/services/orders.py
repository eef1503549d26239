"""
Order Service

Places customer orders and manages them afterwards.

Placement checks, in order:
    1. every item references an active product with enough stock
    2. the restaurant is open (when business hours are enforced)
    3. delivery orders: the address resolves inside a delivery zone

Prices always come from the catalog. On success the stock counters are
decremented, an in-app notification row is added in the same transaction,
and staff are alerted through the notification service.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Order, OrderItem, OrderNotification, OrderStatus, OrderType, Product
from app.schemas import OrderCreate
from app.services import order_notifications
from app.services.business_hours import BusinessHoursService
from app.services.delivery_zones import DeliveryZoneResolver
from app.services.notifications import BaseNotificationService

logger = logging.getLogger(__name__)


@dataclass
class OrderPlacementResult:
    """Result of placing an order."""
    success: bool
    order: Optional[Order] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None


def _rejected(message: str, code: str) -> OrderPlacementResult:
    logger.info(f"Order rejected ({code}): {message}")
    return OrderPlacementResult(success=False, error_message=message, error_code=code)


class OrderService:
    """
    Order placement.

    Example:
        >>> service = OrderService(resolver, business_hours, notifier)
        >>> result = await service.place_order(db, order_data)
        >>> if not result.success:
        ...     print(result.error_code, result.error_message)
    """

    def __init__(
        self,
        resolver: DeliveryZoneResolver,
        business_hours: BusinessHoursService,
        notifier: Optional[BaseNotificationService] = None,
        enforce_business_hours: bool = True,
    ):
        self._resolver = resolver
        self._business_hours = business_hours
        self._notifier = notifier
        self._enforce_business_hours = enforce_business_hours

    async def place_order(self, db: AsyncSession, data: OrderCreate) -> OrderPlacementResult:
        logger.info(f"Placing {data.order_type.value} order for {data.customer_name}")

        # =====================================================================
        # PRODUCTS & STOCK
        # =====================================================================
        product_ids = {item.product_id for item in data.items}
        products = {
            p.id: p for p in await db.scalars(select(Product).where(Product.id.in_(product_ids)))
        }

        requested: dict[int, int] = {}
        for item in data.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None or not product.is_active:
                return _rejected(f"Product #{product_id} is not available", "product_unavailable")
            if product.stock_quantity is not None and product.stock_quantity < quantity:
                return _rejected(
                    f"Only {product.stock_quantity} left of {product.name}",
                    "insufficient_stock",
                )

        order_items = [
            OrderItem(
                product_id=item.product_id,
                product_name=products[item.product_id].name,
                quantity=item.quantity,
                unit_price=products[item.product_id].price,
                total_price=round(products[item.product_id].price * item.quantity, 2),
                special_requests=item.special_requests,
            )
            for item in data.items
        ]
        subtotal = round(sum(item.total_price for item in order_items), 2)

        # =====================================================================
        # BUSINESS HOURS
        # =====================================================================
        if self._enforce_business_hours:
            status = await self._business_hours.check()
            if not status.is_open:
                message = status.message
                if status.next_open_time:
                    message += f" Next opening: {status.next_open_time}."
                return _rejected(message, "closed")

        # =====================================================================
        # DELIVERY
        # =====================================================================
        order = Order(
            order_type=OrderType(data.order_type.value),
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            customer_email=data.customer_email,
            notes=data.notes,
            subtotal=subtotal,
            delivery_fee=0.0,
            total_amount=subtotal,
            status=OrderStatus.PENDING,
            items=order_items,
        )

        if order.order_type == OrderType.DELIVERY:
            check = await self._resolver.validate_address(data.delivery_address, order_amount=subtotal)
            if not check.is_valid or not check.is_within_zone:
                return _rejected(
                    check.error or "We cannot deliver to this address.",
                    check.error_code or "out_of_range",
                )

            order.delivery_address = check.formatted_address or data.delivery_address
            order.delivery_latitude = check.latitude
            order.delivery_longitude = check.longitude
            order.delivery_distance_km = round(check.distance, 2)
            order.estimated_time = check.estimated_time
            order.delivery_fee = check.delivery_fee
            order.total_amount = round(subtotal + check.delivery_fee, 2)

        # =====================================================================
        # PERSIST
        # =====================================================================
        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock_quantity is not None:
                product.stock_quantity -= quantity

        db.add(order)
        await db.flush()
        await order_notifications.create_for_order(db, order, commit=False)
        await db.commit()

        logger.info(f"Order #{order.id} created: {len(order_items)} item(s), total {order.total_amount:.2f}")

        if self._notifier is not None:
            try:
                await order_notifications.send_new_order_alert(order, self._notifier)
            except Exception:
                logger.exception(f"New order alert failed for order #{order.id}")

        return OrderPlacementResult(success=True, order=order)


# =============================================================================
# MANAGEMENT
# =============================================================================

async def list_orders(
    db: AsyncSession,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 10,
) -> tuple[int, list[Order]]:
    """Newest first. Returns (total matching, page)."""
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    count_query = select(func.count(Order.id))

    if status is not None:
        query = query.where(Order.status == status)
        count_query = count_query.where(Order.status == status)

    total = await db.scalar(count_query) or 0
    orders = await db.scalars(query.offset(skip).limit(limit))
    return total, list(orders)


async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    return await db.get(Order, order_id)


async def update_status(db: AsyncSession, order_id: int, status: OrderStatus) -> Optional[Order]:
    """Set any status; there are no transition rules."""
    order = await db.get(Order, order_id)
    if order is None:
        return None

    previous = order.status
    order.status = status
    await db.commit()
    logger.info(f"Order #{order_id} status: {previous.value} -> {status.value}")
    return order


async def delete_order(db: AsyncSession, order_id: int) -> bool:
    """
    Delete an order with its items and notifications.

    Items and notifications are removed first, each step on its own; a
    failing step is logged and the next one still runs.

    Returns:
        bool: False if the order does not exist
    """
    if await db.get(Order, order_id) is None:
        return False

    for label, statement in (
        ("items", delete(OrderItem).where(OrderItem.order_id == order_id)),
        ("notifications", delete(OrderNotification).where(OrderNotification.order_id == order_id)),
    ):
        try:
            await db.execute(statement)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(f"Could not delete {label} of order #{order_id}: {e}")

    await db.execute(delete(Order).where(Order.id == order_id))
    await db.commit()
    db.expunge_all()
    logger.info(f"Order #{order_id} deleted")
    return True
