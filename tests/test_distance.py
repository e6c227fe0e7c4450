"""Unit tests for great-circle distance."""

import pytest

from src.domain.distance import distance_km, haversine_km
from src.domain.entities import GeoPoint
from tests.conftest import CONNAUGHT_PLACE, INDIA_GATE


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(28.6315, 77.2167, 28.6315, 77.2167) == 0.0

    def test_known_distance(self):
        # Connaught Place -> India Gate is roughly 2.4 km as the crow flies
        d = distance_km(CONNAUGHT_PLACE, INDIA_GATE)
        assert 2.0 < d < 2.8

    def test_symmetric(self):
        assert distance_km(CONNAUGHT_PLACE, INDIA_GATE) == pytest.approx(
            distance_km(INDIA_GATE, CONNAUGHT_PLACE)
        )

    def test_one_degree_of_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)

    def test_antipodal_points(self):
        d = distance_km(GeoPoint(0, 0), GeoPoint(0, 180))
        assert d == pytest.approx(20015.09, abs=0.1)


class TestGeoPoint:
    @pytest.mark.parametrize("lat,lng", [(91, 0), (-90.5, 0), (0, 180.1), (0, -181)])
    def test_rejects_out_of_range(self, lat, lng):
        with pytest.raises(ValueError):
            GeoPoint(lat, lng)
