"""
Geocoder Factory

Provides a single entry point for obtaining a geocoder instance.
Automatically selects Mock or Google Maps based on ENV_MODE configuration.

Usage:
    from app.services.geo import get_geocoder

    geocoder = get_geocoder(api_key)
    result = await geocoder.geocode("Via Roma 1, Torino")
"""

import logging
from functools import lru_cache
from typing import Optional

from app.core.config import get_settings
from app.services.geo.base import BaseGeocoder, GeocodeResult
from app.services.geo.distance import EARTH_RADIUS_KM, haversine_km
from app.services.geo.mock import MockGeocoder
from app.services.geo.google import GoogleGeocoder

logger = logging.getLogger(__name__)


@lru_cache()
def get_geocoder(api_key: Optional[str] = None) -> BaseGeocoder:
    """
    Get the configured geocoder instance.

    Cached per API key, so a key changed from the admin panel gets a
    fresh Google client on the next call.

    Args:
        api_key: Key stored in the shipping settings; falls back to
            GOOGLE_MAPS_API_KEY

    Returns:
        BaseGeocoder: Configured geocoder instance

    Raises:
        ValueError: If real services are enabled but no API key is available
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Geocoder: Using MockGeocoder (development mode)")
        return MockGeocoder(
            failure_rate=0.05,  # 5% simulated failures
            min_latency=0.1,
            max_latency=0.5,
        )

    logger.info(
        f"Geocoder: Using GoogleGeocoder "
        f"({settings.env_mode.value} mode)"
    )
    return GoogleGeocoder(api_key or settings.google_maps_api_key)


def reset_geocoder() -> None:
    """
    Clear the cached geocoder instances.

    Useful for testing or when configuration changes at runtime.
    """
    get_geocoder.cache_clear()
    logger.debug("Geocoder cache cleared")


__all__ = [
    "get_geocoder",
    "reset_geocoder",
    "haversine_km",
    "EARTH_RADIUS_KM",
    "BaseGeocoder",
    "GeocodeResult",
    "MockGeocoder",
    "GoogleGeocoder",
]
