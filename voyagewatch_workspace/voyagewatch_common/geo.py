"""
VoyageWatch — Geodetic Utilities
================================
Spherical-Earth great-circle helpers shared by the location change detector
and the leg analyzer. Points are (lat, lon) tuples in decimal degrees.
"""

import math
from typing import Tuple

Point = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0
KM_PER_NM       = 1.852


def distance_km(a: Point, b: Point) -> float:
    """
    Great-circle distance in kilometres (haversine):
        h = sin²(Δφ/2) + cos φ₁ · cos φ₂ · sin²(Δλ/2)
        d = 2R · atan2(√h, √(1−h))
    """
    phi1, phi2 = math.radians(a[0]), math.radians(b[0])
    dphi = math.radians(b[0] - a[0])
    dlam = math.radians(b[1] - a[1])

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_nm(a: Point, b: Point) -> float:
    """Great-circle distance in nautical miles."""
    return distance_km(a, b) / KM_PER_NM


def bearing_deg(a: Point, b: Point) -> float:
    """Initial great-circle bearing from a to b, in [0, 360)."""
    phi1, phi2 = math.radians(a[0]), math.radians(b[0])
    dlam = math.radians(b[1] - a[1])
    x = math.sin(dlam) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlam)
    bearing = math.degrees(math.atan2(x, y)) % 360.0
    # tiny negative angles wrap to exactly 360.0 under float modulo
    return 0.0 if bearing >= 360.0 else bearing


def midpoint(a: Point, b: Point) -> Point:
    """Arithmetic leg midpoint, used as the weather sampling position."""
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def is_valid_coordinate(lat: float, lon: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
