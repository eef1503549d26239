"""
Tests for distances and geocoders.
"""

import asyncio
import time

import pytest

from app.services.geo import GoogleGeocoder, MockGeocoder, get_geocoder, haversine_km, reset_geocoder

from conftest import KM_PER_DEGREE, RESTAURANT_LAT, RESTAURANT_LNG, north_of_restaurant


class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine_km(RESTAURANT_LAT, RESTAURANT_LNG, RESTAURANT_LAT, RESTAURANT_LNG) == 0.0

    def test_symmetric(self):
        there = (45.4642, 9.19)
        forward = haversine_km(RESTAURANT_LAT, RESTAURANT_LNG, *there)
        backward = haversine_km(*there, RESTAURANT_LAT, RESTAURANT_LNG)
        assert forward == pytest.approx(backward)

    def test_one_degree_of_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(KM_PER_DEGREE)

    def test_meridian_offsets(self):
        lat, lng = north_of_restaurant(7)
        assert haversine_km(RESTAURANT_LAT, RESTAURANT_LNG, lat, lng) == pytest.approx(7, abs=1e-6)

    def test_turin_to_milan(self):
        # Roughly 126 km as the crow flies
        assert haversine_km(RESTAURANT_LAT, RESTAURANT_LNG, 45.4642, 9.19) == pytest.approx(126, abs=3)

    def test_antipodal_points_do_not_fail(self):
        distance = haversine_km(0, 0, 0, 180)
        assert distance == pytest.approx(3.141592653589793 * 6371)


@pytest.mark.asyncio
class TestMockGeocoder:

    async def test_known_address(self):
        result = await MockGeocoder().geocode("Via Roma 1, 10123 Torino")
        assert result is not None
        assert result.formatted_address.startswith("Via Roma, 1")
        assert result.coordinates == (45.0705, 7.6868)

    async def test_lookup_ignores_case_and_commas(self):
        result = await MockGeocoder().geocode("PIAZZA,  CASTELLO")
        assert result is not None
        assert "Piazza Castello" in result.formatted_address

    async def test_unknown_address(self):
        assert await MockGeocoder().geocode("Nowhere Lane 99") is None

    async def test_blank_address(self):
        assert await MockGeocoder().geocode("   ") is None

    async def test_simulated_failure(self):
        with pytest.raises(ConnectionError):
            await MockGeocoder(failure_rate=1.0).geocode("Via Roma 1")

    async def test_custom_table(self):
        geocoder = MockGeocoder(known_addresses={"test": (1.0, 2.0, "Test Place")})
        result = await geocoder.geocode("a test address")
        assert result.formatted_address == "Test Place"


class TestFactory:

    def test_development_uses_mock(self):
        reset_geocoder()
        geocoder = get_geocoder()
        assert isinstance(geocoder, MockGeocoder)
        assert geocoder.provider_name == "mock"
        assert get_geocoder() is geocoder
        reset_geocoder()

    def test_google_requires_key(self):
        with pytest.raises(ValueError):
            GoogleGeocoder(None)


class SlowGoogleClient:
    """Stands in for ``googlemaps.Client``; blocks like a real HTTP round trip."""

    def __init__(self, results, delay: float = 0.0):
        self.results = results
        self.delay = delay
        self.calls = []

    def geocode(self, address, **kwargs):
        self.calls.append((address, kwargs))
        time.sleep(self.delay)
        return self.results


GOOGLE_RESULT = [{
    "formatted_address": "Corso Giulio Cesare, 36, 10152 Torino TO, Italy",
    "geometry": {"location": {"lat": 45.0852, "lng": 7.6893}},
}]


@pytest.mark.asyncio
class TestGoogleGeocoder:

    async def test_first_candidate_is_used(self):
        client = SlowGoogleClient(GOOGLE_RESULT)
        geocoder = GoogleGeocoder("AIza-test", client=client)

        result = await geocoder.geocode("C.so Giulio Cesare 36, Torino")

        assert result.latitude == 45.0852
        assert result.formatted_address == "Corso Giulio Cesare, 36, 10152 Torino TO, Italy"
        assert client.calls == [("C.so Giulio Cesare 36, Torino", {"region": "it", "language": "it"})]

    async def test_no_candidates(self):
        geocoder = GoogleGeocoder("AIza-test", client=SlowGoogleClient([]))
        assert await geocoder.geocode("Nowhere") is None

    async def test_event_loop_keeps_running_during_lookup(self):
        geocoder = GoogleGeocoder("AIza-test", client=SlowGoogleClient(GOOGLE_RESULT, delay=0.5))
        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                await asyncio.sleep(0.05)
                ticks += 1

        task = asyncio.create_task(ticker())
        try:
            assert await geocoder.geocode("Torino") is not None
            assert await geocoder.health_check()
        finally:
            task.cancel()

        assert ticks >= 10
