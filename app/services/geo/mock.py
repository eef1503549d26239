"""
Mock Geocoder Implementation

Simulates the Google Maps Geocoding API without making real API calls.
Used in development mode (ENV_MODE=development) for local testing.

Behavior:
    - Resolves addresses against a table of known Turin locations
    - Unknown addresses yield no result (like Google's ZERO_RESULTS)
    - Optional simulated network latency
    - Optional random API failure rate for testing error handling
"""

import asyncio
import random
import logging
from typing import Optional

from app.services.geo.base import BaseGeocoder, GeocodeResult

logger = logging.getLogger(__name__)


# Lower-cased address fragment -> (lat, lng, formatted address)
KNOWN_ADDRESSES: dict[str, tuple[float, float, str]] = {
    "giulio cesare 36": (45.047698, 7.679902, "Corso Giulio Cesare, 36, 10152 Torino TO, Italia"),
    "via roma 1": (45.070500, 7.686800, "Via Roma, 1, 10123 Torino TO, Italia"),
    "piazza castello": (45.071000, 7.686500, "Piazza Castello, 10122 Torino TO, Italia"),
    "corso francia 200": (45.078500, 7.626200, "Corso Francia, 200, 10143 Torino TO, Italia"),
    "moncalieri": (45.000000, 7.683300, "10024 Moncalieri TO, Italia"),
    "chieri": (45.012400, 7.824500, "10023 Chieri TO, Italia"),
    "milano": (45.464200, 9.190000, "Milano MI, Italia"),
}


class MockGeocoder(BaseGeocoder):
    """
    Mock implementation of the geocoder.

    Attributes:
        failure_rate: Probability of simulated API failure (0.0-1.0)
        min_latency: Minimum response time in seconds
        max_latency: Maximum response time in seconds
        known_addresses: Address fragment -> (lat, lng, formatted address)

    Example:
        >>> geocoder = MockGeocoder()
        >>> result = await geocoder.geocode("Via Roma 1, Torino")
        >>> print(result.formatted_address)
        'Via Roma, 1, 10123 Torino TO, Italia'
    """

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
        known_addresses: Optional[dict[str, tuple[float, float, str]]] = None,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.known_addresses = dict(KNOWN_ADDRESSES if known_addresses is None else known_addresses)

        logger.info(
            f"MockGeocoder initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"known_addresses={len(self.known_addresses)})"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    async def _simulate_latency(self) -> float:
        """
        Simulate network latency.

        Returns:
            float: Latency in milliseconds
        """
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency > 0:
            await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        """Determine if this request should simulate a failure."""
        return random.random() < self.failure_rate

    def _lookup(self, address: str) -> Optional[tuple[float, float, str]]:
        normalized = " ".join(address.lower().replace(",", " ").split())
        # Longest fragment first so "via roma 1" beats a shorter overlap
        for fragment in sorted(self.known_addresses, key=len, reverse=True):
            if fragment in normalized:
                return self.known_addresses[fragment]
        return None

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        """
        Geocode an address (mock implementation).

        Raises:
            ConnectionError: on a simulated provider failure
        """
        logger.debug(f"Mock: Geocoding address - {address}")

        latency_ms = await self._simulate_latency()

        if self._should_fail():
            logger.debug("Mock: Simulated API failure")
            raise ConnectionError("Geocoding service temporarily unavailable")

        if not address or not address.strip():
            return None

        match = self._lookup(address)
        if match is None:
            logger.debug(f"Mock: No result for {address}")
            return None

        lat, lng, formatted_address = match
        logger.info(f"Mock: Address geocoded - {formatted_address}")

        return GeocodeResult(
            latitude=lat,
            longitude=lng,
            formatted_address=formatted_address,
            response_time_ms=latency_ms,
        )

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        logger.debug("Mock: Geo health check passed")
        return True
