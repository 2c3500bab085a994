"""Azimuth estimate from RA/Dec and wraparound folding for hour and degree deltas.

The mount's own azimuth jumps mid-slew and reports a placeholder near home, so
azimuth is derived from RA/Dec, sidereal time, and the site latitude instead.
"""
import math
from typing import Tuple

from cablewrap.config import SITE_UNSET_EPSILON_DEG


def normalize_degrees(angle: float) -> float:
    """Wrap angle into [0, 360)."""
    wrapped = float(angle) % 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


def fold_hours(delta: float) -> float:
    """Fold a raw RA delta across the 0h/24h seam (23.95 -> 0.05 gives +0.1, not -23.9)."""
    if delta > 12.0:
        delta -= 24.0
    if delta < -12.0:
        delta += 24.0
    return delta


def fold_degrees(delta: float) -> float:
    """Fold a raw azimuth delta across the 0/360 seam into [-180, 180]."""
    if delta > 180.0:
        delta -= 360.0
    if delta < -180.0:
        delta += 360.0
    return delta


def site_is_configured(lat_degrees: float, lon_degrees: float) -> bool:
    return abs(lat_degrees) >= SITE_UNSET_EPSILON_DEG or abs(lon_degrees) >= SITE_UNSET_EPSILON_DEG


def estimate_azimuth(
    ra_hours: float,
    dec_degrees: float,
    lst_hours: float,
    lat_degrees: float,
    lon_degrees: float,
    raw_azimuth: float,
) -> float:
    """Return azimuth in degrees, N=0 E=90 S=180 W=270.

    Falls back to the raw hardware azimuth when the site is unset (lat and lon
    both ~0); the hour-angle math is meaningless without a real site.
    """
    if not site_is_configured(lat_degrees, lon_degrees):
        return normalize_degrees(raw_azimuth)
    ha = (lst_hours - ra_hours) * math.pi / 12.0
    dec = math.radians(dec_degrees)
    lat = math.radians(lat_degrees)
    az = math.atan2(
        -math.cos(dec) * math.sin(ha),
        math.sin(dec) * math.cos(lat) - math.cos(dec) * math.cos(ha) * math.sin(lat),
    )
    return normalize_degrees(math.degrees(az))


def altaz_to_radec(
    alt_degrees: float,
    az_degrees: float,
    lst_hours: float,
    lat_degrees: float,
) -> Tuple[float, float]:
    """Return (ra_hours, dec_degrees) of the point at alt/az for this sidereal time.

    Inverse of estimate_azimuth for a configured site.
    """
    alt = math.radians(alt_degrees)
    az = math.radians(az_degrees)
    lat = math.radians(lat_degrees)
    sin_dec = math.sin(alt) * math.sin(lat) + math.cos(alt) * math.cos(lat) * math.cos(az)
    dec = math.asin(max(-1.0, min(1.0, sin_dec)))
    ha = math.atan2(
        -math.cos(alt) * math.sin(az),
        math.sin(alt) * math.cos(lat) - math.cos(alt) * math.cos(az) * math.sin(lat),
    )
    ra = (lst_hours - math.degrees(ha) / 15.0) % 24.0
    return ra, math.degrees(dec)
