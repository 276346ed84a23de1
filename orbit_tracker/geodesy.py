"""
Time, Frame and Spherical Geometry Utilities

Conversions shared by the ground-track, pass and terminator computations:
- UTC datetime to Julian date
- TEME to ECEF rotation using Greenwich sidereal time
- ECEF to geodetic latitude/longitude/altitude (WGS-84)
- Topocentric look angles from a ground observer
- Great-circle destination points and longitude normalization
"""

import math
from datetime import datetime, timezone
from typing import Tuple

import numpy as np
from sgp4.api import jday

from config import WGS84_A_KM, WGS84_F

J2000_JD = 2451545.0

_E2 = 2.0 * WGS84_F - WGS84_F * WGS84_F


def datetime_to_jd_fr(dt: datetime) -> Tuple[float, float]:
    """
    Convert a datetime to Julian date and fraction.

    Naive datetimes are taken as UTC.

    Args:
        dt: Datetime object

    Returns:
        Tuple of (julian_day, fraction)
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return jday(
        dt.year, dt.month, dt.day, dt.hour, dt.minute,
        dt.second + dt.microsecond / 1e6,
    )


def days_since_j2000(dt: datetime) -> float:
    jd, fr = datetime_to_jd_fr(dt)
    return (jd - J2000_JD) + fr


def gmst_radians(dt: datetime) -> float:
    """Greenwich apparent sidereal time (IAU-82 GMST plus equation of equinoxes)."""
    T = days_since_j2000(dt) / 36525.0

    gmst_sec = (
        67310.54841 +
        (876600.0 * 3600.0 + 8640184.812866) * T +
        0.093104 * T * T -
        6.2e-6 * T * T * T
    )
    gmst_rad = (gmst_sec % 86400.0) * (2.0 * math.pi / 86400.0)

    omega = 125.04452 - 1934.136261 * T
    delta_psi = -0.000319 * math.sin(math.radians(omega))
    eqeq = delta_psi * math.cos(math.radians(23.4393))

    return gmst_rad + eqeq


def teme_to_ecef(r_teme, dt: datetime) -> np.ndarray:
    """
    Rotate a TEME position into the Earth-fixed frame.

    Args:
        r_teme: Position vector in TEME coordinates [x, y, z] (km)
        dt: Instant of the position

    Returns:
        Position vector in ECEF coordinates (km)
    """
    gast = gmst_radians(dt)
    cos_gast = math.cos(gast)
    sin_gast = math.sin(gast)

    return np.array([
        cos_gast * r_teme[0] + sin_gast * r_teme[1],
        -sin_gast * r_teme[0] + cos_gast * r_teme[1],
        r_teme[2],
    ])


def ecef_to_geodetic(r_ecef) -> Tuple[float, float, float]:
    """
    ECEF to geodetic conversion using Bowring's method.

    Args:
        r_ecef: Position vector in ECEF coordinates [x, y, z] (km)

    Returns:
        Tuple of (latitude_deg, longitude_deg, altitude_km)
    """
    a = WGS84_A_KM
    b = a * (1.0 - WGS84_F)
    ep2 = _E2 / (1.0 - _E2)

    x, y, z = r_ecef
    lon = math.atan2(y, x)
    p = math.sqrt(x * x + y * y)

    # Pole
    if p < 1e-10:
        lat = math.pi / 2.0 if z > 0 else -math.pi / 2.0
        return math.degrees(lat), math.degrees(lon), abs(z) - b

    theta = math.atan2(z * a, p * b)
    for _ in range(5):
        sin_theta = math.sin(theta)
        cos_theta = math.cos(theta)

        lat = math.atan2(
            z + ep2 * b * sin_theta ** 3,
            p - _E2 * a * cos_theta ** 3,
        )

        sin_lat = math.sin(lat)
        N = a / math.sqrt(1.0 - _E2 * sin_lat * sin_lat)
        new_theta = math.atan2(z + _E2 * N * sin_lat, p)
        if abs(new_theta - theta) < 1e-12:
            break
        theta = new_theta

    cos_lat = math.cos(lat)
    sin_lat = math.sin(lat)
    N = a / math.sqrt(1.0 - _E2 * sin_lat * sin_lat)

    if cos_lat > 1e-10:
        alt = p / cos_lat - N
    else:
        alt = z / sin_lat - N * (1.0 - _E2)

    return math.degrees(lat), math.degrees(lon), alt


def geodetic_to_ecef(lat_deg: float, lon_deg: float, alt_km: float = 0.0) -> np.ndarray:
    lat = math.radians(lat_deg)
    lon = math.radians(lon_deg)
    N = WGS84_A_KM / math.sqrt(1.0 - _E2 * math.sin(lat) ** 2)

    return np.array([
        (N + alt_km) * math.cos(lat) * math.cos(lon),
        (N + alt_km) * math.cos(lat) * math.sin(lon),
        (N * (1.0 - _E2) + alt_km) * math.sin(lat),
    ])


def look_angles(r_ecef, lat_deg: float, lon_deg: float) -> Tuple[float, float, float]:
    """
    Topocentric look angles from a ground observer to an Earth-fixed position.

    Args:
        r_ecef: Target position in ECEF coordinates (km)
        lat_deg: Observer geodetic latitude
        lon_deg: Observer longitude

    Returns:
        Tuple of (elevation_deg, azimuth_deg, range_km); azimuth is measured
        clockwise from north in [0, 360).
    """
    rho = np.asarray(r_ecef, dtype=float) - geodetic_to_ecef(lat_deg, lon_deg)
    range_km = float(np.linalg.norm(rho))

    lat = math.radians(lat_deg)
    lon = math.radians(lon_deg)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)

    # ECEF -> East/North/Up
    enu = np.array([
        [-sin_lon, cos_lon, 0.0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
    ]) @ rho
    east, north, up = enu

    elevation = math.degrees(math.asin(np.clip(up / range_km, -1.0, 1.0)))
    azimuth = math.degrees(math.atan2(east, north)) % 360.0

    return elevation, azimuth, range_km


def normalize_longitude(lon_deg: float) -> float:
    """Wrap a longitude into (-180, 180]."""
    lon = math.fmod(lon_deg + 180.0, 360.0)
    if lon <= 0.0:
        lon += 360.0
    return lon - 180.0


def destination_point(
    lat_deg: float, lon_deg: float, bearing_deg: float, angular_distance_rad: float
) -> Tuple[float, float]:
    """
    Point reached travelling a great-circle arc from a start point.

    Args:
        lat_deg: Start latitude
        lon_deg: Start longitude
        bearing_deg: Initial bearing, clockwise from north
        angular_distance_rad: Arc length as a central angle

    Returns:
        Tuple of (latitude_deg, longitude_deg) with longitude in (-180, 180]
    """
    lat1 = math.radians(lat_deg)
    lon1 = math.radians(lon_deg)
    theta = math.radians(bearing_deg)
    delta = angular_distance_rad

    sin_lat2 = (
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    )
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    lon2 = lon1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * sin_lat2,
    )

    return math.degrees(lat2), normalize_longitude(math.degrees(lon2))
