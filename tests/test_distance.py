"""Unit tests for great-circle distance."""

import pytest

from ambulance_dispatch.domain.distance import distance_km, haversine_km
from ambulance_dispatch.domain.entities import Coordinates


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(19.0, 72.0, 19.0, 72.0) == 0.0

    def test_known_distance(self):
        # Mumbai airport → Andheri ~3.6 km (approx)
        d = haversine_km(19.0896, 72.8656, 19.1176, 72.8490)
        assert 3.0 < d < 5.0

    def test_symmetric(self):
        d1 = haversine_km(19.0, 72.0, 20.0, 73.0)
        d2 = haversine_km(20.0, 73.0, 19.0, 72.0)
        assert abs(d1 - d2) < 1e-6

    def test_one_degree_of_latitude(self):
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)

    def test_antimeridian(self):
        """Points either side of 180° are close, not half a world apart."""
        assert haversine_km(0.0, 179.9, 0.0, -179.9) < 25.0


class TestDistanceKm:
    def test_matches_haversine(self):
        a = Coordinates(19.0760, 72.8777)
        b = Coordinates(28.6139, 77.2090)
        assert distance_km(a, b) == haversine_km(19.0760, 72.8777, 28.6139, 77.2090)
