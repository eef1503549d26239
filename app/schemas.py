"""
Pydantic Schemas for Request/Response Validation

Configuration payloads stored in the settings table (shipping settings,
delivery zones, business hours) keep the camelCase keys the storefront
frontend writes; everything else is snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum
import re


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatusEnum(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"


class OrderTypeEnum(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class CamelModel(BaseModel):
    """Base for JSON documents persisted in the settings table."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# DELIVERY ZONES
# =============================================================================

class ShippingZoneSettings(CamelModel):
    """Stored under the ``shippingZoneSettings`` key."""
    enabled: bool = True
    restaurant_address: str = "C.so Giulio Cesare, 36, 10152 Torino TO"
    restaurant_lat: float = Field(default=45.047698, ge=-90, le=90)
    restaurant_lng: float = Field(default=7.679902, ge=-180, le=180)
    max_delivery_distance: float = Field(default=15.0, ge=0, description="Kilometers")
    delivery_fee: float = Field(default=5.00, ge=0)
    free_delivery_threshold: float = Field(default=50.00, ge=0)
    google_maps_api_key: str = ""


class ShippingZoneSettingsUpdate(CamelModel):
    """Partial update of the shipping settings."""
    enabled: Optional[bool] = None
    restaurant_address: Optional[str] = None
    restaurant_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    restaurant_lng: Optional[float] = Field(default=None, ge=-180, le=180)
    max_delivery_distance: Optional[float] = Field(default=None, ge=0)
    delivery_fee: Optional[float] = Field(default=None, ge=0)
    free_delivery_threshold: Optional[float] = Field(default=None, ge=0)
    google_maps_api_key: Optional[str] = None


class DeliveryZone(CamelModel):
    """One distance tier, stored in the ``deliveryZones`` list."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100, examples=["Zone 1 (0-5km)"])
    max_distance: float = Field(..., ge=0, description="Upper bound in kilometers")
    delivery_fee: float = Field(..., ge=0)
    estimated_time: str = Field(default="30-45 minutes", max_length=50)
    is_active: bool = True


class Coordinates(BaseModel):
    lat: float
    lng: float


class AddressValidationRequest(BaseModel):
    address: str = Field(..., max_length=255, examples=["Via Roma 1, 10123 Torino"])
    order_amount: float = Field(default=0.0, ge=0, examples=[32.50])


class AddressValidationResponse(BaseModel):
    is_valid: bool
    is_within_zone: bool
    distance: float
    delivery_fee: float
    estimated_time: str
    formatted_address: str
    coordinates: Coordinates
    zone_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class RestaurantLocationUpdate(BaseModel):
    address: str = Field(..., min_length=3, max_length=255)


# =============================================================================
# BUSINESS HOURS
# =============================================================================

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class DayHours(CamelModel):
    is_open: bool = True
    open_time: str = Field(default="18:30", pattern=_TIME_PATTERN)
    close_time: str = Field(default="22:30", pattern=_TIME_PATTERN)


class WeeklyHours(CamelModel):
    """Stored under the ``businessHours`` key."""
    monday: DayHours = Field(default_factory=DayHours)
    tuesday: DayHours = Field(default_factory=DayHours)
    wednesday: DayHours = Field(default_factory=DayHours)
    thursday: DayHours = Field(default_factory=DayHours)
    friday: DayHours = Field(default_factory=DayHours)
    saturday: DayHours = Field(default_factory=DayHours)
    sunday: DayHours = Field(default_factory=DayHours)


class BusinessHoursResponse(BaseModel):
    is_open: bool
    message: str
    next_open_time: Optional[str] = None
    today_hours: Optional[DayHours] = None


# =============================================================================
# SETTINGS STORE
# =============================================================================

class SettingValue(BaseModel):
    value: Any = None


class SettingResponse(BaseModel):
    key: str
    value: Any = None


class SettingsBatchRequest(BaseModel):
    keys: List[str] = Field(..., min_length=1, max_length=50)


# =============================================================================
# CATALOG
# =============================================================================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Pizze Classiche"])
    description: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[str] = Field(None, max_length=500)
    sort_order: int = 0
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    sort_order: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, examples=["Margherita"])
    description: Optional[str] = Field(None, max_length=2000)
    price: float = Field(..., gt=0, examples=[7.50])
    category_id: Optional[int] = None
    image_url: Optional[str] = Field(None, max_length=500)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: bool = True
    sort_order: int = 0


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[float] = Field(None, gt=0)
    category_id: Optional[int] = None
    image_url: Optional[str] = Field(None, max_length=500)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    category_id: Optional[int] = None
    image_url: Optional[str] = None
    stock_quantity: Optional[int] = None
    is_active: bool
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class StockUpdate(BaseModel):
    stock_quantity: Optional[int] = Field(..., ge=0, description="null disables stock tracking")


class BulkStockUpdate(BaseModel):
    stock: dict[int, Optional[int]] = Field(..., min_length=1, examples=[{"1": 10, "2": 0}])

    @field_validator("stock")
    @classmethod
    def validate_quantities(cls, v: dict[int, Optional[int]]) -> dict[int, Optional[int]]:
        for product_id, quantity in v.items():
            if quantity is not None and quantity < 0:
                raise ValueError(f"Stock for product {product_id} cannot be negative")
        return v


class BulkStockResponse(BaseModel):
    updated: List[int]
    missing: List[int]


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single item in an order; the price comes from the catalog."""
    product_id: int = Field(..., ge=1, examples=[1])
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    special_requests: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""

    order_type: OrderTypeEnum = Field(
        default=OrderTypeEnum.DELIVERY,
        examples=["delivery"]
    )

    customer_name: str = Field(..., min_length=2, max_length=100, examples=["Mario Rossi"])
    customer_phone: str = Field(..., min_length=6, max_length=20, examples=["+39 347 919 0907"])
    customer_email: Optional[str] = Field(None, max_length=255, examples=["mario@example.com"])

    delivery_address: Optional[str] = Field(None, max_length=255, examples=["Via Roma 1, Torino"])
    notes: Optional[str] = Field(None, max_length=500)

    items: List[OrderItemCreate] = Field(..., min_length=1)

    @field_validator('customer_phone')
    @classmethod
    def validate_phone(cls, v: str) -> str:
        cleaned = re.sub(r'[^\d]', '', v)
        if len(cleaned) < 8:
            raise ValueError('Phone number must have at least 8 digits')
        return v

    @model_validator(mode="after")
    def validate_delivery_address(self) -> "OrderCreate":
        if self.order_type == OrderTypeEnum.DELIVERY and not (self.delivery_address or "").strip():
            raise ValueError("Delivery address is required for delivery orders")
        return self


class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[int] = None
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    special_requests: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: int
    order_type: OrderTypeEnum
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_distance_km: Optional[float] = None
    estimated_time: Optional[str] = None
    notes: Optional[str] = None
    subtotal: float
    delivery_fee: float
    total_amount: float
    status: OrderStatusEnum
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    model_config = ConfigDict(from_attributes=True)


class OrderCreateResponse(BaseModel):
    success: bool
    message: str
    order: OrderResponse


class OrderListResponse(BaseModel):
    total: int
    orders: List[OrderResponse]


class OrderStatusUpdate(BaseModel):
    status: OrderStatusEnum


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationResponse(BaseModel):
    id: int
    order_id: Optional[int] = None
    title: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    unread: int
    notifications: List[NotificationResponse]


# =============================================================================
# STORAGE
# =============================================================================

class StoredObjectResponse(BaseModel):
    bucket: str
    path: str
    url: str
    size: int


class GalleryImageResponse(BaseModel):
    id: int
    bucket: str
    path: str
    url: str
    title: Optional[str] = None
    sort_order: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# GENERIC
# =============================================================================

class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    database: str
    realtime: str
    geocoder: str
    timestamp: datetime
