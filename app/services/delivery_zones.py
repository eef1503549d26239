"""
Delivery Zone Resolver

Decides whether an address can be delivered to, at what fee and with
what ETA:

    1. geocode the address
    2. great-circle distance from the restaurant (Haversine, R = 6371 km)
    3. reject beyond the global maximum distance
    4. pick the active zone with the tightest upper bound covering the distance
    5. waive the zone fee when the order reaches the free-delivery threshold

Configuration lives in the settings store under ``shippingZoneSettings``
and ``deliveryZones``; it is loaded lazily and dropped whenever either key
changes, so edits from the admin panel (or another worker) apply on the
next validation.

Geocoding failures are reported as an invalid address. There is no retry,
no caching of geocoding results and no backoff.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError

from app.schemas import DeliveryZone, ShippingZoneSettings, ShippingZoneSettingsUpdate
from app.services.geo import BaseGeocoder, get_geocoder, haversine_km
from app.services.settings_defaults import (
    DEFAULT_DELIVERY_ZONES,
    DELIVERY_ZONES_KEY,
    SHIPPING_SETTINGS_KEY,
)
from app.services.settings_store import SettingsStore, SettingsWriteError

logger = logging.getLogger(__name__)

GeocoderFactory = Callable[[Optional[str]], BaseGeocoder]

NOT_AVAILABLE = "N/A"


@dataclass
class AddressValidationResult:
    """
    Outcome of a delivery address check.

    Attributes:
        is_valid: The address could be resolved (or zones are disabled)
        is_within_zone: Delivery is possible
        distance: Kilometers from the restaurant
        delivery_fee: Fee to charge (0 when waived)
        estimated_time: ETA of the matched zone, "N/A" otherwise
        formatted_address: Provider's address, or the input when unresolved
        latitude / longitude: Geocoded position, (0, 0) when unresolved
        zone_id: Matched zone
        error: Customer-facing message when delivery is refused
        error_code: Machine-readable error code
    """
    is_valid: bool
    is_within_zone: bool
    distance: float = 0.0
    delivery_fee: float = 0.0
    estimated_time: str = NOT_AVAILABLE
    formatted_address: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    zone_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_valid": self.is_valid,
            "is_within_zone": self.is_within_zone,
            "distance": self.distance,
            "delivery_fee": self.delivery_fee,
            "estimated_time": self.estimated_time,
            "formatted_address": self.formatted_address,
            "coordinates": {"lat": self.latitude, "lng": self.longitude},
            "zone_id": self.zone_id,
            "error": self.error,
            "error_code": self.error_code,
        }


def find_zone(zones: Iterable[DeliveryZone], distance: float) -> Optional[DeliveryZone]:
    """
    The active zone with the smallest ``max_distance`` that covers ``distance``.

    Bounds are inclusive. Returns None when no active zone reaches that far.
    """
    for zone in sorted((z for z in zones if z.is_active), key=lambda z: z.max_distance):
        if distance <= zone.max_distance:
            return zone
    return None


def calculate_fee(zone: DeliveryZone, order_amount: float, free_delivery_threshold: float) -> float:
    """Zone fee, or 0 once the order amount reaches the threshold."""
    if order_amount >= free_delivery_threshold:
        return 0.0
    return zone.delivery_fee


class DeliveryZoneResolver:
    """
    Delivery address validation against distance-based zones.

    Example:
        >>> resolver = DeliveryZoneResolver(store)
        >>> result = await resolver.validate_address("Via Roma 1, Torino", order_amount=32.0)
        >>> if result.is_within_zone:
        ...     print(result.delivery_fee, result.estimated_time)
    """

    def __init__(
        self,
        store: SettingsStore,
        geocoder_factory: GeocoderFactory = get_geocoder,
    ):
        self._store = store
        self._geocoder_factory = geocoder_factory
        self._settings: Optional[ShippingZoneSettings] = None
        self._zones: Optional[list[DeliveryZone]] = None

        store.subscribe(SHIPPING_SETTINGS_KEY, self._invalidate)
        store.subscribe(DELIVERY_ZONES_KEY, self._invalidate)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def _invalidate(self, _value: Any = None) -> None:
        self._settings = None
        self._zones = None

    async def _load(self) -> tuple[ShippingZoneSettings, list[DeliveryZone]]:
        settings, zones = self._settings, self._zones
        if settings is not None and zones is not None:
            return settings, zones

        raw_settings = await self._store.get(SHIPPING_SETTINGS_KEY)
        try:
            settings = ShippingZoneSettings.model_validate(raw_settings or {})
        except ValidationError as e:
            logger.warning(f"Invalid shipping settings in database, using defaults: {e}")
            settings = ShippingZoneSettings()

        raw_zones = await self._store.get(DELIVERY_ZONES_KEY)
        zones = []
        if isinstance(raw_zones, list):
            for raw_zone in raw_zones:
                try:
                    zones.append(DeliveryZone.model_validate(raw_zone))
                except ValidationError as e:
                    logger.warning(f"Skipping invalid delivery zone {raw_zone!r}: {e}")
        elif raw_zones is not None:
            logger.warning("Delivery zones setting is not a list, ignoring it")

        logger.debug(f"Shipping configuration loaded ({len(zones)} zone(s))")
        self._settings, self._zones = settings, zones
        return settings, zones

    async def get_settings(self) -> ShippingZoneSettings:
        settings, _ = await self._load()
        return settings.model_copy()

    async def get_zones(self) -> list[DeliveryZone]:
        _, zones = await self._load()
        return [zone.model_copy() for zone in zones]

    async def reload(self) -> None:
        """Drop the loaded configuration and read it again from the database."""
        logger.info("Reloading shipping zones from database")
        self._invalidate()
        self._store.clear_cache(SHIPPING_SETTINGS_KEY)
        self._store.clear_cache(DELIVERY_ZONES_KEY)
        await self._load()

    async def update_settings(
        self,
        changes: Union[ShippingZoneSettingsUpdate, dict],
    ) -> ShippingZoneSettings:
        """
        Merge a partial update into the shipping settings and persist it.

        Raises:
            ValidationError: if ``changes`` is an invalid dict
            SettingsWriteError: if the database write failed
        """
        if not isinstance(changes, ShippingZoneSettingsUpdate):
            changes = ShippingZoneSettingsUpdate.model_validate(changes)

        current = await self.get_settings()
        merged = current.model_copy(update=changes.model_dump(exclude_none=True))

        if not await self._store.set(SHIPPING_SETTINGS_KEY, merged):
            raise SettingsWriteError(SHIPPING_SETTINGS_KEY)

        self._settings = merged
        logger.info("Shipping settings updated")
        return merged.model_copy()

    async def update_zones(self, zones: Iterable[DeliveryZone]) -> list[DeliveryZone]:
        """
        Replace the zone list.

        Raises:
            SettingsWriteError: if the database write failed
        """
        zones = [zone.model_copy() for zone in zones]
        payload = [zone.model_dump(by_alias=True) for zone in zones]

        if not await self._store.set(DELIVERY_ZONES_KEY, payload):
            raise SettingsWriteError(DELIVERY_ZONES_KEY)

        self._zones = zones
        logger.info(f"Delivery zones updated: {len(zones)} zone(s)")
        return [zone.model_copy() for zone in zones]

    async def initialize_default_zones(self) -> list[DeliveryZone]:
        """Replace the zone list with the three default tiers."""
        zones = await self.update_zones(DEFAULT_DELIVERY_ZONES)
        logger.info("Default zones initialized and saved")
        return zones

    async def set_restaurant_location(self, address: str) -> bool:
        """
        Geocode ``address`` and make it the origin of every distance.

        The address text is stored as typed; only the coordinates come from
        the geocoder.

        Returns:
            bool: False when the address could not be geocoded
        """
        settings = await self.get_settings()
        try:
            geocoder = self._geocoder_factory(settings.google_maps_api_key or None)
            location = await geocoder.geocode(address)
        except Exception:
            logger.exception(f"Could not geocode restaurant address {address!r}")
            return False

        if location is None:
            logger.warning(f"Restaurant address not found: {address!r}")
            return False

        await self.update_settings(ShippingZoneSettingsUpdate(
            restaurant_address=address,
            restaurant_lat=location.latitude,
            restaurant_lng=location.longitude,
        ))
        logger.info(f"Restaurant location set to {location.coordinates}")
        return True

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def validate_address(self, address: str, order_amount: float = 0.0) -> AddressValidationResult:
        """
        Check whether ``address`` can be delivered to.

        Args:
            address: Free-text delivery address
            order_amount: Order subtotal, used for the free-delivery threshold

        Returns:
            AddressValidationResult
        """
        settings, zones = await self._load()

        if not settings.enabled:
            return AddressValidationResult(
                is_valid=True,
                is_within_zone=True,
                formatted_address=address,
            )

        try:
            geocoder = self._geocoder_factory(settings.google_maps_api_key or None)
            location = await geocoder.geocode(address)
        except Exception:
            logger.exception("Address validation error")
            return AddressValidationResult(
                is_valid=False,
                is_within_zone=False,
                formatted_address=address,
                error="Unable to validate address. Please try again.",
                error_code="validation_error",
            )

        if location is None:
            return AddressValidationResult(
                is_valid=False,
                is_within_zone=False,
                formatted_address=address,
                error="Unable to find the address. Please check and try again.",
                error_code="address_not_found",
            )

        distance = haversine_km(
            settings.restaurant_lat,
            settings.restaurant_lng,
            location.latitude,
            location.longitude,
        )

        if distance > settings.max_delivery_distance:
            logger.info(f"Address out of range: {distance:.2f} km > {settings.max_delivery_distance} km")
            return AddressValidationResult(
                is_valid=True,
                is_within_zone=False,
                distance=distance,
                formatted_address=location.formatted_address,
                latitude=location.latitude,
                longitude=location.longitude,
                error=(
                    "Sorry, we don't deliver to this area. "
                    f"Maximum delivery distance is {settings.max_delivery_distance:g}km."
                ),
                error_code="out_of_range",
            )

        zone = find_zone(zones, distance)
        if zone is None:
            return AddressValidationResult(
                is_valid=True,
                is_within_zone=False,
                distance=distance,
                formatted_address=location.formatted_address,
                latitude=location.latitude,
                longitude=location.longitude,
                error="No delivery zone configured for this distance.",
                error_code="no_zone",
            )

        fee = calculate_fee(zone, order_amount, settings.free_delivery_threshold)
        logger.info(f"Address in {zone.name}: {distance:.2f} km, fee {fee:.2f}")

        return AddressValidationResult(
            is_valid=True,
            is_within_zone=True,
            distance=distance,
            delivery_fee=fee,
            estimated_time=zone.estimated_time,
            formatted_address=location.formatted_address,
            latitude=location.latitude,
            longitude=location.longitude,
            zone_id=zone.id,
        )
