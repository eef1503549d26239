"""
FastAPI Application Entry Point

Restaurant Storefront backend.
Supports both Mock services (development) and Real APIs (production).

Endpoints:
    - /api/settings: key-value content edited from the admin panel
    - /api/delivery: address validation, zones and shipping settings
    - /api/business-hours: opening hours and "open now" check
    - /api/categories, /api/products: the menu and stock
    - /api/orders: order placement and management
    - /api/notifications: staff notifications
    - /api/uploads, /api/gallery: image storage
    - GET /health: System health check
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from app.core.config import get_settings, setup_logging
from app.database import async_session_maker, engine, get_db, init_db
from app.models import OrderStatus
from app.schemas import (
    AddressValidationRequest,
    AddressValidationResponse,
    BulkStockResponse,
    BulkStockUpdate,
    BusinessHoursResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    DeliveryZone,
    ErrorResponse,
    GalleryImageResponse,
    HealthResponse,
    NotificationListResponse,
    NotificationResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusEnum,
    OrderStatusUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    RestaurantLocationUpdate,
    SettingResponse,
    SettingsBatchRequest,
    SettingValue,
    ShippingZoneSettings,
    ShippingZoneSettingsUpdate,
    StockUpdate,
    StoredObjectResponse,
    WeeklyHours,
)
from app.services import catalog, order_notifications, orders, storage as storage_service
from app.services.business_hours import BusinessHoursService
from app.services.delivery_zones import DeliveryZoneResolver, GeocoderFactory
from app.services.geo import get_geocoder
from app.services.notifications import BaseNotificationService, get_notification_service
from app.services.orders import OrderService
from app.services.realtime import BaseBroadcaster, get_broadcaster
from app.services.settings_store import SettingsStore, SettingsWriteError
from app.services.settings_sync import SettingsSync
from app.services.storage import InvalidUploadError, ObjectStorage, StorageError

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# SERVICE WIRING
# =============================================================================

def configure_services(
    app: FastAPI,
    session_maker: async_sessionmaker[AsyncSession],
    broadcaster: Optional[BaseBroadcaster] = None,
    notifier: Optional[BaseNotificationService] = None,
    object_storage: Optional[ObjectStorage] = None,
    geocoder_factory: GeocoderFactory = get_geocoder,
) -> SettingsStore:
    """
    Build the per-process services and keep them on ``app.state``.

    Used by the lifespan handler and by tests with their own database.
    """
    store = SettingsStore(session_maker, broadcaster=broadcaster)
    resolver = DeliveryZoneResolver(store, geocoder_factory=geocoder_factory)
    business_hours = BusinessHoursService(store, timezone=settings.restaurant_timezone)

    app.state.settings_store = store
    app.state.broadcaster = broadcaster
    app.state.delivery_resolver = resolver
    app.state.geocoder_factory = geocoder_factory
    app.state.business_hours = business_hours
    app.state.order_service = OrderService(
        resolver,
        business_hours,
        notifier=notifier,
        enforce_business_hours=settings.enforce_business_hours,
    )
    app.state.storage = object_storage or ObjectStorage(
        settings.storage_directory,
        base_url=settings.storage_base_url,
        max_bytes=settings.storage_max_upload_bytes,
        attempts=settings.storage_upload_attempts,
        lock_timeout=settings.storage_lock_timeout,
    )
    return store


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    broadcaster = get_broadcaster()
    notifier = get_notification_service()
    store = configure_services(app, async_session_maker, broadcaster=broadcaster, notifier=notifier)

    if not await store.initialize():
        logger.warning("Default settings could not be seeded; continuing with stored values")

    logger.info(f"Broadcaster: {broadcaster.provider_name}")
    logger.info(f"Notification Service: {notifier.provider_name}")

    sync = SettingsSync(store, broadcaster, poll_interval=settings.settings_poll_interval)
    if settings.realtime_enabled:
        sync.start()

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await sync.stop()
    await broadcaster.close()
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant storefront backend: menu, orders, delivery zones and "
        "admin-editable settings synchronized across workers."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.storage_base_url.startswith("/"):
    app.mount(
        settings.storage_base_url,
        StaticFiles(directory=settings.storage_directory, check_dir=False),
        name="uploads",
    )


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_delivery_resolver(request: Request) -> DeliveryZoneResolver:
    return request.app.state.delivery_resolver


def get_business_hours(request: Request) -> BusinessHoursService:
    return request.app.state.business_hours


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    broadcaster = request.app.state.broadcaster
    if broadcaster is None:
        realtime_status = "disabled"
    else:
        realtime_status = "healthy" if await broadcaster.health_check() else "unhealthy"

    try:
        shipping = await resolver.get_settings()
        geocoder = request.app.state.geocoder_factory(shipping.google_maps_api_key or None)
        geocoder_status = "healthy" if await geocoder.health_check() else "unhealthy"
    except ValueError as e:
        geocoder_status = f"unconfigured: {e}"

    overall = "operational" if all(
        s in ("healthy", "disabled") for s in [db_status, realtime_status, geocoder_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        realtime=realtime_status,
        geocoder=geocoder_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# SETTINGS ENDPOINTS
# =============================================================================

@app.post("/api/settings/batch", tags=["Settings"], summary="Get Several Settings")
async def get_settings_batch(
    body: SettingsBatchRequest,
    store: SettingsStore = Depends(get_settings_store),
) -> dict[str, Any]:
    """Missing keys are absent from the result."""
    return await store.get_many(body.keys)


@app.get("/api/settings/cache", tags=["Settings"], summary="Settings Cache Stats")
async def settings_cache_stats(store: SettingsStore = Depends(get_settings_store)) -> dict[str, Any]:
    return store.cache_stats()


@app.delete("/api/settings/cache", tags=["Settings"], summary="Clear Settings Cache")
async def clear_settings_cache(
    key: Optional[str] = Query(None),
    store: SettingsStore = Depends(get_settings_store),
) -> dict[str, Any]:
    store.clear_cache(key)
    return store.cache_stats()


_NOT_STORED = object()


@app.get("/api/settings/{key}", response_model=SettingResponse, tags=["Settings"])
async def read_setting(key: str, store: SettingsStore = Depends(get_settings_store)) -> SettingResponse:
    value = await store.get(key, _NOT_STORED)
    if value is _NOT_STORED:
        raise HTTPException(status_code=404, detail=f"Setting '{key}' not found")
    return SettingResponse(key=key, value=value)


@app.put("/api/settings/{key}", response_model=SettingResponse, tags=["Settings"])
async def write_setting(
    key: str,
    body: SettingValue,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingResponse:
    if not await store.set(key, body.value):
        raise HTTPException(status_code=500, detail=f"Could not save setting '{key}'")
    return SettingResponse(key=key, value=body.value)


@app.delete("/api/settings/{key}", tags=["Settings"])
async def remove_setting(key: str, store: SettingsStore = Depends(get_settings_store)) -> dict[str, Any]:
    if not await store.delete(key):
        raise HTTPException(status_code=404, detail=f"Setting '{key}' not found")
    return {"success": True, "key": key}


# =============================================================================
# DELIVERY ENDPOINTS
# =============================================================================

@app.post(
    "/api/delivery/validate",
    response_model=AddressValidationResponse,
    tags=["Delivery"],
    summary="Validate Delivery Address",
)
async def validate_delivery_address(
    body: AddressValidationRequest,
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> AddressValidationResponse:
    """Resolve the address, its zone, fee and ETA."""
    result = await resolver.validate_address(body.address, order_amount=body.order_amount)
    return AddressValidationResponse(**result.to_dict())


@app.get("/api/delivery/settings", response_model=ShippingZoneSettings, tags=["Delivery"])
async def read_shipping_settings(
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> ShippingZoneSettings:
    return await resolver.get_settings()


@app.put("/api/delivery/settings", response_model=ShippingZoneSettings, tags=["Delivery"])
async def write_shipping_settings(
    body: ShippingZoneSettingsUpdate,
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> ShippingZoneSettings:
    try:
        return await resolver.update_settings(body)
    except SettingsWriteError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/delivery/zones", response_model=list[DeliveryZone], tags=["Delivery"])
async def read_delivery_zones(
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> list[DeliveryZone]:
    return await resolver.get_zones()


@app.put("/api/delivery/zones", response_model=list[DeliveryZone], tags=["Delivery"])
async def write_delivery_zones(
    zones: list[DeliveryZone],
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> list[DeliveryZone]:
    ids = [zone.id for zone in zones]
    if len(ids) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Zone ids must be unique")
    try:
        return await resolver.update_zones(zones)
    except SettingsWriteError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/delivery/zones/defaults", response_model=list[DeliveryZone], tags=["Delivery"])
async def reset_delivery_zones(
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> list[DeliveryZone]:
    try:
        return await resolver.initialize_default_zones()
    except SettingsWriteError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/delivery/location", response_model=ShippingZoneSettings, tags=["Delivery"])
async def set_restaurant_location(
    body: RestaurantLocationUpdate,
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> ShippingZoneSettings:
    try:
        located = await resolver.set_restaurant_location(body.address)
    except SettingsWriteError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not located:
        raise HTTPException(status_code=400, detail="Unable to find the restaurant address")
    return await resolver.get_settings()


@app.post("/api/delivery/reload", tags=["Delivery"])
async def reload_delivery_configuration(
    resolver: DeliveryZoneResolver = Depends(get_delivery_resolver),
) -> dict[str, Any]:
    await resolver.reload()
    return {"success": True, "zones": len(await resolver.get_zones())}


# =============================================================================
# BUSINESS HOURS ENDPOINTS
# =============================================================================

@app.get("/api/business-hours", response_model=BusinessHoursResponse, tags=["Business Hours"])
async def business_hours_status(
    service: BusinessHoursService = Depends(get_business_hours),
) -> BusinessHoursResponse:
    """Whether the restaurant is open right now."""
    status = await service.check()
    return BusinessHoursResponse(
        is_open=status.is_open,
        message=status.message,
        next_open_time=status.next_open_time,
        today_hours=status.today_hours,
    )


@app.get("/api/business-hours/schedule", response_model=WeeklyHours, tags=["Business Hours"])
async def read_business_hours(service: BusinessHoursService = Depends(get_business_hours)) -> WeeklyHours:
    return await service.get_hours()


@app.put("/api/business-hours/schedule", response_model=WeeklyHours, tags=["Business Hours"])
async def write_business_hours(
    body: WeeklyHours,
    service: BusinessHoursService = Depends(get_business_hours),
) -> WeeklyHours:
    if not await service.update_hours(body):
        raise HTTPException(status_code=500, detail="Could not save business hours")
    return body


# =============================================================================
# CATALOG ENDPOINTS
# =============================================================================

@app.get("/api/categories", response_model=list[CategoryResponse], tags=["Catalog"])
async def list_categories(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> list[CategoryResponse]:
    categories = await catalog.list_categories(db, active_only=active_only)
    return [CategoryResponse.model_validate(c) for c in categories]


@app.post("/api/categories", response_model=CategoryResponse, status_code=201, tags=["Catalog"])
async def create_category(body: CategoryCreate, db: AsyncSession = Depends(get_db)) -> CategoryResponse:
    return CategoryResponse.model_validate(await catalog.create_category(db, body))


@app.get("/api/categories/{category_id}", response_model=CategoryResponse, tags=["Catalog"])
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)) -> CategoryResponse:
    category = await catalog.get_category(db, category_id)
    if category is None:
        raise HTTPException(status_code=404, detail=f"Category #{category_id} not found")
    return CategoryResponse.model_validate(category)


@app.put("/api/categories/{category_id}", response_model=CategoryResponse, tags=["Catalog"])
async def update_category(
    category_id: int,
    body: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    category = await catalog.update_category(db, category_id, body)
    if category is None:
        raise HTTPException(status_code=404, detail=f"Category #{category_id} not found")
    return CategoryResponse.model_validate(category)


@app.delete("/api/categories/{category_id}", tags=["Catalog"])
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    failed = await catalog.delete_category(db, category_id)
    if failed is None:
        raise HTTPException(status_code=404, detail=f"Category #{category_id} not found")
    return {"success": True, "undeleted_products": failed}


@app.get("/api/products", response_model=list[ProductResponse], tags=["Catalog"])
async def list_products(
    category_id: Optional[int] = Query(None),
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> list[ProductResponse]:
    products = await catalog.list_products(db, category_id=category_id, active_only=active_only)
    return [ProductResponse.model_validate(p) for p in products]


@app.get("/api/products/search", response_model=list[ProductResponse], tags=["Catalog"])
async def search_products(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> list[ProductResponse]:
    products = await catalog.search_products(db, q, limit=limit)
    return [ProductResponse.model_validate(p) for p in products]


@app.put("/api/products/stock", response_model=BulkStockResponse, tags=["Catalog"])
async def bulk_update_stock(body: BulkStockUpdate, db: AsyncSession = Depends(get_db)) -> BulkStockResponse:
    updated, missing = await catalog.bulk_update_stock(db, body.stock)
    return BulkStockResponse(updated=updated, missing=missing)


@app.post("/api/products", response_model=ProductResponse, status_code=201, tags=["Catalog"])
async def create_product(body: ProductCreate, db: AsyncSession = Depends(get_db)) -> ProductResponse:
    if body.category_id is not None and await catalog.get_category(db, body.category_id) is None:
        raise HTTPException(status_code=400, detail=f"Category #{body.category_id} not found")
    return ProductResponse.model_validate(await catalog.create_product(db, body))


@app.get("/api/products/{product_id}", response_model=ProductResponse, tags=["Catalog"])
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)) -> ProductResponse:
    product = await catalog.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product #{product_id} not found")
    return ProductResponse.model_validate(product)


@app.put("/api/products/{product_id}", response_model=ProductResponse, tags=["Catalog"])
async def update_product(
    product_id: int,
    body: ProductUpdate,
    db: AsyncSession = Depends(get_db),
) -> ProductResponse:
    product = await catalog.update_product(db, product_id, body)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product #{product_id} not found")
    return ProductResponse.model_validate(product)


@app.delete("/api/products/{product_id}", tags=["Catalog"])
async def delete_product(product_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    if not await catalog.delete_product(db, product_id):
        raise HTTPException(status_code=404, detail=f"Product #{product_id} not found")
    return {"success": True}


@app.put("/api/products/{product_id}/stock", response_model=ProductResponse, tags=["Catalog"])
async def update_stock(
    product_id: int,
    body: StockUpdate,
    db: AsyncSession = Depends(get_db),
) -> ProductResponse:
    product = await catalog.update_stock(db, product_id, body.stock_quantity)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product #{product_id} not found")
    return ProductResponse.model_validate(product)


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderCreateResponse:
    """
    Place an order from the storefront.

    Prices, delivery fee and ETA are computed server-side.
    """
    result = await service.place_order(db, order_data)
    if not result.success:
        raise HTTPException(
            status_code=400,
            detail={"error": result.error_message, "error_code": result.error_code},
        )

    return OrderCreateResponse(
        success=True,
        message="Order placed successfully!",
        order=OrderResponse.model_validate(result.order),
    )


@app.get("/api/orders", response_model=OrderListResponse, tags=["Orders"], summary="List Orders")
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatusEnum] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Retrieve paginated list of orders, newest first."""
    total, page = await orders.list_orders(
        db,
        status=OrderStatus(status.value) if status else None,
        skip=skip,
        limit=limit,
    )
    return OrderListResponse(
        total=total,
        orders=[OrderResponse.model_validate(order) for order in page],
    )


@app.get("/api/orders/{order_id}", response_model=OrderResponse, tags=["Orders"])
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)) -> OrderResponse:
    order = await orders.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")
    return OrderResponse.model_validate(order)


@app.patch("/api/orders/{order_id}/status", response_model=OrderResponse, tags=["Orders"])
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await orders.update_status(db, order_id, OrderStatus(body.status.value))
    if not order:
        raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")
    return OrderResponse.model_validate(order)


@app.delete("/api/orders/{order_id}", tags=["Orders"])
async def delete_order(order_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    if not await orders.delete_order(db, order_id):
        raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")
    return {"success": True}


# =============================================================================
# NOTIFICATION ENDPOINTS
# =============================================================================

@app.get("/api/notifications", response_model=NotificationListResponse, tags=["Notifications"])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> NotificationListResponse:
    items = await order_notifications.list_notifications(db, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        unread=await order_notifications.unread_count(db),
        notifications=[NotificationResponse.model_validate(n) for n in items],
    )


@app.post("/api/notifications/read-all", tags=["Notifications"])
async def mark_all_notifications_read(db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    return {"success": True, "updated": await order_notifications.mark_all_read(db)}


@app.post("/api/notifications/{notification_id}/read", response_model=NotificationResponse, tags=["Notifications"])
async def mark_notification_read(notification_id: int, db: AsyncSession = Depends(get_db)) -> NotificationResponse:
    notification = await order_notifications.mark_read(db, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail=f"Notification #{notification_id} not found")
    return NotificationResponse.model_validate(notification)


@app.delete("/api/notifications/{notification_id}", tags=["Notifications"])
async def delete_notification(notification_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    if not await order_notifications.delete_notification(db, notification_id):
        raise HTTPException(status_code=404, detail=f"Notification #{notification_id} not found")
    return {"success": True}


# =============================================================================
# STORAGE ENDPOINTS
# =============================================================================

async def _store_upload(object_storage: ObjectStorage, bucket: str, file: UploadFile):
    data = await file.read()
    try:
        return await asyncio.to_thread(
            object_storage.upload, bucket, file.filename or "upload", data, file.content_type
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/uploads/{bucket}", response_model=StoredObjectResponse, status_code=201, tags=["Storage"])
async def upload_object(
    bucket: str,
    file: UploadFile = File(...),
    object_storage: ObjectStorage = Depends(get_storage),
) -> StoredObjectResponse:
    stored = await _store_upload(object_storage, bucket, file)
    return StoredObjectResponse(**stored.to_dict())


@app.get("/api/uploads/{bucket}", response_model=list[StoredObjectResponse], tags=["Storage"])
async def list_objects(bucket: str, object_storage: ObjectStorage = Depends(get_storage)) -> list[StoredObjectResponse]:
    try:
        objects = await asyncio.to_thread(object_storage.list_objects, bucket)
    except InvalidUploadError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [StoredObjectResponse(**o.to_dict()) for o in objects]


@app.delete("/api/uploads/{bucket}/{path}", tags=["Storage"])
async def delete_object(
    bucket: str,
    path: str,
    object_storage: ObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    try:
        deleted = await asyncio.to_thread(object_storage.delete, bucket, path)
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Object {bucket}/{path} not found")
    return {"success": True}


@app.get("/api/gallery", response_model=list[GalleryImageResponse], tags=["Gallery"])
async def list_gallery(db: AsyncSession = Depends(get_db)) -> list[GalleryImageResponse]:
    images = await storage_service.list_gallery_images(db)
    return [GalleryImageResponse.model_validate(i) for i in images]


@app.post("/api/gallery", response_model=GalleryImageResponse, status_code=201, tags=["Gallery"])
async def add_gallery_image(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    sort_order: int = Form(0),
    db: AsyncSession = Depends(get_db),
    object_storage: ObjectStorage = Depends(get_storage),
) -> GalleryImageResponse:
    stored = await _store_upload(object_storage, "gallery", file)
    image = await storage_service.add_gallery_image(db, stored, title=title, sort_order=sort_order)
    return GalleryImageResponse.model_validate(image)


@app.delete("/api/gallery/{image_id}", tags=["Gallery"])
async def delete_gallery_image(
    image_id: int,
    db: AsyncSession = Depends(get_db),
    object_storage: ObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    if not await storage_service.delete_gallery_image(db, object_storage, image_id):
        raise HTTPException(status_code=404, detail=f"Gallery image #{image_id} not found")
    return {"success": True}


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Invalid data that reached a service outside of request parsing."""
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "Validation Error", "detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )

