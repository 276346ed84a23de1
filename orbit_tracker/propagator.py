"""
SGP4 Propagator

Provides the propagation capability consumed by the ground-track and pass
samplers, using the proven sgp4 library.

Features:
- One cached Satrec per element set
- Propagate to arbitrary UTC instants (TEME position/velocity)
- Sub-satellite point (geodetic latitude/longitude/altitude)
- Topocentric look angles for a ground observer

A non-zero SGP4 error code raises PredictionError; callers scanning many
instants skip the failed sample and carry on.
"""

import logging
from datetime import datetime
from typing import Dict, NamedTuple, Tuple

from sgp4.api import Satrec

from orbit_tracker import geodesy
from orbit_tracker.errors import PredictionError
from orbit_tracker.models import ObserverLocation, OrbitalElements

logger = logging.getLogger(__name__)


class GroundPoint(NamedTuple):
    latitude: float
    longitude: float
    altitude_km: float


class LookAngles(NamedTuple):
    elevation_deg: float
    azimuth_deg: float
    range_km: float


class Sgp4Propagator:
    """
    SGP4 propagation of orbital elements with geodetic/topocentric products.
    """

    def __init__(self):
        self.satellites: Dict[Tuple[str, str], Satrec] = {}

    def load(self, elements: OrbitalElements) -> Satrec:
        """Return the Satrec for an element set, building it on first use"""
        satellite = self.satellites.get(elements.key)
        if satellite is None:
            try:
                satellite = Satrec.twoline2rv(elements.line1, elements.line2)
            except Exception as e:
                raise PredictionError(f"Failed to load elements: {e}") from e
            logger.debug(f"Loaded elements for NORAD {elements.norad_id}")
            self.satellites = {elements.key: satellite}
        return satellite

    def propagate(self, elements: OrbitalElements, when: datetime):
        """
        Propagate to an instant.

        Args:
            elements: Orbital elements to propagate
            when: Target time (UTC)

        Returns:
            Tuple of (position_km, velocity_kms) in TEME coordinates

        Raises:
            PredictionError: SGP4 reported an error for this instant
        """
        satellite = self.load(elements)
        jd, fr = geodesy.datetime_to_jd_fr(when)

        error, position, velocity = satellite.sgp4(jd, fr)
        if error != 0:
            raise PredictionError.from_sgp4(error, when)

        return position, velocity

    def subpoint(self, elements: OrbitalElements, when: datetime) -> GroundPoint:
        position, _ = self.propagate(elements, when)
        r_ecef = geodesy.teme_to_ecef(position, when)
        return GroundPoint(*geodesy.ecef_to_geodetic(r_ecef))

    def look_angles(
        self, elements: OrbitalElements, observer: ObserverLocation, when: datetime
    ) -> LookAngles:
        """Elevation/azimuth/range of the object as seen by the observer."""
        position, _ = self.propagate(elements, when)
        r_ecef = geodesy.teme_to_ecef(position, when)
        return LookAngles(
            *geodesy.look_angles(r_ecef, observer.latitude, observer.longitude)
        )
