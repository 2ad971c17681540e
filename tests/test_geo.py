"""
Geodetic helper tests: haversine distance, initial bearing, midpoint.
"""

import pytest

from voyagewatch_common.geo import (
    bearing_deg,
    distance_km,
    distance_nm,
    is_valid_coordinate,
    midpoint,
)


# ═══════════════════════════════════════════════════════════════════════
# DISTANCE
# ═══════════════════════════════════════════════════════════════════════

class TestDistance:

    def test_same_point_is_zero(self):
        assert distance_nm((43.3, 5.4), (43.3, 5.4)) == 0.0

    def test_symmetric(self):
        a, b = (48.85, 2.35), (40.71, -74.0)
        assert distance_km(a, b) == pytest.approx(distance_km(b, a))

    def test_one_degree_of_latitude_is_sixty_nm(self):
        assert distance_nm((0.0, 0.0), (1.0, 0.0)) == pytest.approx(60.04, abs=0.05)

    def test_one_degree_of_longitude_at_equator(self):
        assert distance_nm((0.0, 0.0), (0.0, 1.0)) == pytest.approx(60.04, abs=0.05)

    def test_paris_new_york(self):
        assert distance_km((48.8566, 2.3522), (40.7128, -74.0060)) == pytest.approx(5837, rel=0.01)

    def test_antipodes_do_not_raise(self):
        assert distance_km((0.0, 0.0), (0.0, 180.0)) == pytest.approx(20015, rel=0.001)


# ═══════════════════════════════════════════════════════════════════════
# BEARING
# ═══════════════════════════════════════════════════════════════════════

class TestBearing:

    @pytest.mark.parametrize("dest, expected", [
        ((1.0, 0.0),  0.0),
        ((0.0, 1.0),  90.0),
        ((-1.0, 0.0), 180.0),
        ((0.0, -1.0), 270.0),
    ])
    def test_cardinal_directions(self, dest, expected):
        assert bearing_deg((0.0, 0.0), dest) == pytest.approx(expected, abs=1e-6)

    def test_always_in_range(self):
        for dest in [(10, -170), (-60, 179), (89, 0), (-5, -5)]:
            b = bearing_deg((0.0, 0.0), dest)
            assert 0.0 <= b < 360.0


# ═══════════════════════════════════════════════════════════════════════
# MIDPOINT / VALIDATION
# ═══════════════════════════════════════════════════════════════════════

class TestMidpointAndValidation:

    def test_midpoint_is_arithmetic_mean(self):
        assert midpoint((10.0, 20.0), (12.0, 24.0)) == (11.0, 22.0)

    @pytest.mark.parametrize("lat, lon, ok", [
        (0, 0, True),
        (90, 180, True),
        (-90, -180, True),
        (90.1, 0, False),
        (0, -180.5, False),
    ])
    def test_coordinate_ranges(self, lat, lon, ok):
        assert is_valid_coordinate(lat, lon) is ok
