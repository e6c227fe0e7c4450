"""Tests for address resolution and the geo adapter."""

import httpx
import pytest

from src.domain.entities import GeoPoint, Location, PlaceQuery
from src.domain.errors import LocationUnresolved
from src.domain.ports import ResolutionError
from src.infrastructure.geocoding import NominatimGeocoder, SimulatedGeocoder
from src.services.geo import GeoAdapter
from tests.conftest import CONNAUGHT_PLACE, DELHI_CENTER, INDIA_GATE


class TestGeoAdapter:
    @pytest.mark.asyncio
    async def test_resolve(self, geocoder):
        location = await GeoAdapter(geocoder).resolve("  India Gate ")
        assert location.point == INDIA_GATE
        assert location.address == "India Gate"

    @pytest.mark.asyncio
    async def test_resolve_empty_text(self, geocoder):
        with pytest.raises(ResolutionError):
            await GeoAdapter(geocoder).resolve("   ")

    @pytest.mark.asyncio
    async def test_locate_keeps_addressed_location(self, geocoder):
        given = Location(GeoPoint(28.5, 77.1), "Office")
        location, warnings = await GeoAdapter(geocoder).locate(given)
        assert location is given
        assert warnings == []

    @pytest.mark.asyncio
    async def test_locate_pin_without_known_address(self, geocoder):
        pin = Location(GeoPoint(28.5, 77.1))
        location, warnings = await GeoAdapter(geocoder).locate(pin)
        assert location.point == pin.point
        assert location.address is None
        assert len(warnings) == 1

    @pytest.mark.asyncio
    async def test_locate_falls_back_to_near_point(self, geocoder):
        location, warnings = await GeoAdapter(geocoder).locate(
            PlaceQuery("Gate No. 4, Khan Market", near=DELHI_CENTER)
        )
        assert location.approximate
        assert location.address == "Gate No. 4, Khan Market"
        assert "approximate" in warnings[0]

    @pytest.mark.asyncio
    async def test_locate_unresolvable(self, geocoder):
        with pytest.raises(LocationUnresolved):
            await GeoAdapter(geocoder).locate("Gate No. 4, Khan Market")

    def test_distance_is_injectable(self, geocoder):
        adapter = GeoAdapter(geocoder, distance=lambda a, b: 7.0)
        assert adapter.distance_km(CONNAUGHT_PLACE, INDIA_GATE) == 7.0


class TestSimulatedGeocoder:
    @pytest.mark.asyncio
    async def test_known_place_is_case_insensitive(self):
        geo = SimulatedGeocoder(DELHI_CENTER, {"India Gate": INDIA_GATE})
        assert await geo.geocode("india gate") == INDIA_GATE
        assert await geo.reverse_geocode(INDIA_GATE) == "India Gate"

    @pytest.mark.asyncio
    async def test_unknown_text_is_stable_and_nearby(self):
        geo = SimulatedGeocoder(DELHI_CENTER)
        first = await geo.geocode("221B Baker Street")
        assert first == await geo.geocode("221b baker street")
        assert abs(first.latitude - DELHI_CENTER.latitude) <= 0.05
        assert abs(first.longitude - DELHI_CENTER.longitude) <= 0.05

    @pytest.mark.asyncio
    async def test_configured_failures(self):
        geo = SimulatedGeocoder(DELHI_CENTER, unknown=("Atlantis",))
        with pytest.raises(ResolutionError):
            await geo.geocode("atlantis")


class TestNominatimGeocoder:
    @staticmethod
    def make(handler) -> NominatimGeocoder:
        return NominatimGeocoder(
            httpx.AsyncClient(
                transport=httpx.MockTransport(handler), base_url="http://nominatim.test"
            )
        )

    @pytest.mark.asyncio
    async def test_geocode(self):
        def handler(request):
            assert request.url.path == "/search"
            assert request.url.params["q"] == "India Gate"
            return httpx.Response(200, json=[{"lat": "28.6129", "lon": "77.2295"}])

        assert await self.make(handler).geocode("India Gate") == INDIA_GATE

    @pytest.mark.asyncio
    async def test_no_results(self):
        geo = self.make(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(ResolutionError):
            await geo.geocode("Atlantis")

    @pytest.mark.asyncio
    async def test_reverse(self):
        def handler(request):
            assert request.url.path == "/reverse"
            return httpx.Response(200, json={"display_name": "Rajpath, New Delhi"})

        assert await self.make(handler).reverse_geocode(INDIA_GATE) == "Rajpath, New Delhi"

    @pytest.mark.asyncio
    async def test_provider_error(self):
        geo = self.make(lambda request: httpx.Response(503))
        with pytest.raises(ResolutionError):
            await geo.geocode("India Gate")
