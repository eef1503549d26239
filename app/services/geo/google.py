"""
Google Maps Geocoder Implementation

Production implementation using the Google Maps Geocoding API.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - A Geocoding API key, stored by staff in the shipping settings
      (``googleMapsApiKey``) or provided as GOOGLE_MAPS_API_KEY
    - Geocoding API must be enabled in Google Cloud Console

API Documentation:
    https://developers.google.com/maps/documentation/geocoding
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

import googlemaps
from googlemaps.exceptions import ApiError, Timeout, TransportError

from app.services.geo.base import BaseGeocoder, GeocodeResult

logger = logging.getLogger(__name__)


class GoogleGeocoder(BaseGeocoder):
    """
    Production Google Maps geocoder.

    Errors from the client (``ApiError``, ``Timeout``,
    ``TransportError``) are logged and re-raised; the delivery resolver turns
    them into a validation failure.

    Example:
        >>> geocoder = GoogleGeocoder(api_key="AIza...")
        >>> result = await geocoder.geocode("C.so Giulio Cesare 36, Torino")
        >>> print(result.formatted_address)
        'Corso Giulio Cesare, 36, 10152 Torino TO, Italy'
    """

    def __init__(
        self,
        api_key: Optional[str],
        region: str = "it",
        language: str = "it",
        client: Optional[googlemaps.Client] = None,
    ):
        """
        Initialize Google Maps client with API key.

        The client blocks on HTTP; every call is made from a worker thread.

        Raises:
            ValueError: If no API key is configured
        """
        if not api_key:
            raise ValueError(
                "Google Maps API key not configured. "
                "Please configure it in the admin panel."
            )

        self._client = client or googlemaps.Client(key=api_key)
        self._region = region
        self._language = language

        logger.info("GoogleGeocoder initialized")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "google"

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        """
        Geocode an address with the Geocoding API.

        Only the first (best) candidate is used.
        """
        start_time = datetime.now()

        logger.debug(f"Google: Geocoding address - {address}")

        try:
            geocode_result = await asyncio.to_thread(
                self._client.geocode,
                address,
                region=self._region,
                language=self._language,
            )
        except Timeout:
            logger.error("Google: API timeout")
            raise
        except ApiError as e:
            logger.error(f"Google: API error - {e}")
            raise
        except TransportError as e:
            logger.error(f"Google: Transport error - {e}")
            raise

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

        if not geocode_result:
            logger.warning(f"Google: Address not found - {address}")
            return None

        result = geocode_result[0]
        location = result.get("geometry", {}).get("location", {})

        if location.get("lat") is None or location.get("lng") is None:
            logger.warning(f"Google: Result without coordinates - {address}")
            return None

        formatted_address = result.get("formatted_address", address)
        logger.info(f"Google: Address geocoded - {formatted_address}")

        return GeocodeResult(
            latitude=location["lat"],
            longitude=location["lng"],
            formatted_address=formatted_address,
            response_time_ms=elapsed_ms,
        )

    async def health_check(self) -> bool:
        """
        Verify Google Maps API connectivity.

        Makes a simple geocode request to verify credentials and connectivity.
        """
        try:
            result = await asyncio.to_thread(self._client.geocode, "Torino, Italia")

            if result:
                logger.debug("Google: Health check passed")
                return True

            return False

        except Exception as e:
            logger.error(f"Google: Health check failed - {e}")
            return False
