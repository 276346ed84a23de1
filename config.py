"""
Tracker Configuration and Constants

This module contains physical constants, feed locations, fallback TLE data and
the override-able runtime configuration of the live tracking engine.

Constants:
    Earth radii used by the spherical footprint/terminator geometry (mean
    radius) and by the geodetic conversions (WGS-84 ellipsoid).

Fallback TLE Data:
    Hardcoded ISS TLE data used to seed predictions when the elements feed is
    unreachable at startup.

    IMPORTANT: Update this TLE data periodically for accuracy.
    - Low Earth Orbit (LEO) satellites: Update weekly

    Current TLE epoch: 2025-08-18

    Sources for updated TLEs:
    - CelesTrak.org (public access)

Runtime configuration:
    Every interval, cap and threshold of the engine lives on ``TrackerConfig``.
    ``TrackerConfig.from_env()`` applies ``TRACKER_*`` environment overrides.
"""

import os
from typing import Dict, Any, Optional

from pydantic import BaseModel, Field, field_validator

# Spherical Earth used for footprint and terminator geometry
EARTH_MEAN_RADIUS_KM: float = 6371.0

# WGS-84 ellipsoid used for geodetic conversions
WGS84_A_KM: float = 6378.137  # Equatorial radius (km)
WGS84_F: float = 1.0 / 298.257223563  # Flattening

# Obliquity of the ecliptic (degrees), held constant for the solar approximation
OBLIQUITY_DEG: float = 23.4393

ISS_NORAD_ID: int = 25544
TELEMETRY_URL: str = f"https://api.wheretheiss.at/v1/satellites/{ISS_NORAD_ID}"
ELEMENTS_URL: str = (
    f"https://celestrak.org/NORAD/elements/gp.php?CATNR={ISS_NORAD_ID}&FORMAT=tle"
)

# Fallback ISS TLE for offline predictions
# Last updated: 2025-08-18
FALLBACK_ISS_TLE: Dict[str, Any] = {
    'name': 'ISS (ZARYA)',
    'norad_id': ISS_NORAD_ID,
    'line1': '1 25544U 98067A   25230.51041667  .00002182  00000-0  13103-3 0  9991',
    'line2': '2 25544  51.6416  45.1234 0002329  75.6910 284.4861 15.50000000123456',
}


class TrackerConfig(BaseModel):
    """Override-able engine configuration"""

    norad_id: int = ISS_NORAD_ID
    telemetry_url: str = TELEMETRY_URL
    elements_url: str = ELEMENTS_URL
    request_timeout_s: float = Field(default=10.0, gt=0)

    # Telemetry and trail
    poll_interval_s: float = Field(default=5.0, gt=0)
    trail_max_points: int = Field(default=200, ge=1)

    # Orbital elements
    elements_refresh_s: float = Field(default=2 * 3600.0, gt=0)
    use_fallback_tle: bool = False

    # Pass prediction
    pass_lookahead_s: float = Field(default=24 * 3600.0, gt=0)
    pass_step_s: float = Field(default=60.0, gt=0)
    pass_min_elevation_deg: float = Field(default=10.0, ge=0, lt=90)
    pass_max_count: int = Field(default=5, ge=1)

    # Ground track
    orbit_lookahead_s: float = Field(default=90 * 60.0, gt=0)
    orbit_step_s: float = Field(default=60.0, gt=0)
    orbit_resample_s: float = Field(default=10 * 60.0, gt=0)

    # Terminator
    terminator_refresh_s: float = Field(default=5 * 60.0, gt=0)
    terminator_step_deg: float = Field(default=2.0, gt=0, le=90)

    # Footprint
    footprint_min_elevation_deg: float = Field(default=20.0, ge=0, lt=90)

    # Camera
    initial_zoom: float = 2.6
    follow_animation_s: float = Field(default=1.2, ge=0)
    reset_animation_s: float = Field(default=0.8, ge=0)

    @field_validator('telemetry_url', 'elements_url')
    @classmethod
    def _require_http(cls, value: str) -> str:
        if not value.startswith(('http://', 'https://')):
            raise ValueError(f"Feed URL must be http(s): {value}")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "TrackerConfig":
        """
        Build a configuration from ``TRACKER_*`` environment variables.

        Parameters
        ----------
        environ : dict, optional
            Mapping to read instead of ``os.environ``.

        Returns
        -------
        TrackerConfig
            Configuration with every set variable applied.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in cls.model_fields:
            key = f"TRACKER_{name.upper()}"
            if key in environ:
                overrides[name] = environ[key]
        return cls(**overrides)

