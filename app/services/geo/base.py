"""
Geocoder Abstract Base Class

Defines the interface contract for all geocoding implementations.
Both MockGeocoder and GoogleGeocoder must implement these methods.

Use Cases:
    - Delivery address validation before order placement
    - Locating the restaurant (origin of every distance calculation)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class GeocodeResult:
    """
    A resolved address.

    Attributes:
        latitude: GPS latitude coordinate
        longitude: GPS longitude coordinate
        formatted_address: Provider's normalized address
        response_time_ms: API response time
    """
    latitude: float
    longitude: float
    formatted_address: str
    response_time_ms: float = 0.0

    @property
    def coordinates(self) -> tuple[float, float]:
        return self.latitude, self.longitude

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "formatted_address": self.formatted_address,
            "response_time_ms": self.response_time_ms,
        }


class BaseGeocoder(ABC):
    """
    Abstract base class for geocoders.

    Example:
        >>> geocoder = get_geocoder(api_key)
        >>> result = await geocoder.geocode("Via Roma 1, Torino")
        >>> if result is not None:
        ...     print(result.coordinates)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the geo provider.

        Returns:
            str: Provider name (e.g., "mock", "google")
        """
        pass

    @abstractmethod
    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        """
        Resolve a free-text address to coordinates.

        Args:
            address: Full address as typed by the customer

        Returns:
            GeocodeResult, or None when the provider has no match

        Raises:
            Exception: transport or provider errors are left to the caller
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the geocoding provider.

        Returns:
            bool: True if service is operational
        """
        pass
