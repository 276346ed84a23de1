"""
Sensor Visibility Footprint

Ground radius around the sub-satellite point inside which the object is seen
above a minimum elevation. From the law of cosines on the Earth-center /
observer / satellite triangle at the elevation boundary:

    psi = acos(R / (R + h) * cos(eps)) - eps
    radius = R * psi
"""

import math
from typing import Dict, List, NamedTuple, Optional, Tuple

from config import EARTH_MEAN_RADIUS_KM
from orbit_tracker.geodesy import destination_point
from orbit_tracker.models import LiveFix


def footprint_radius_km(
    altitude_km: float,
    min_elevation_deg: float,
    earth_radius_km: float = EARTH_MEAN_RADIUS_KM,
) -> float:
    """
    Great-circle radius of the visibility footprint.

    Args:
        altitude_km: Height above the spherical Earth; negative values count as 0
        min_elevation_deg: Elevation threshold at the footprint edge
        earth_radius_km: Sphere radius

    Returns:
        Footprint radius in km, never negative
    """
    h = max(0.0, altitude_km)
    eps = math.radians(min_elevation_deg)
    ratio = earth_radius_km / (earth_radius_km + h)

    # Round-off can push the argument just outside [-1, 1]
    arg = max(-1.0, min(1.0, ratio * math.cos(eps)))
    psi = math.acos(arg) - eps

    return max(0.0, earth_radius_km * psi)


class FootprintCircle(NamedTuple):
    latitude: float
    longitude: float
    radius_km: float


class FootprintComputer:
    """Maintains the footprint of the live position while the overlay is on"""

    def __init__(self, min_elevation_deg: float = 20.0, enabled: bool = False,
                 ring_step_deg: float = 5.0):
        self.min_elevation_deg = min_elevation_deg
        self.enabled = enabled
        self.ring_step_deg = ring_step_deg
        self.circle: Optional[FootprintCircle] = None

    def update(self, fix: Optional[LiveFix]) -> Optional[FootprintCircle]:
        if not self.enabled or fix is None:
            self.circle = None
            return None

        radius = footprint_radius_km(fix.altitude, self.min_elevation_deg)
        self.circle = FootprintCircle(fix.latitude, fix.longitude, radius)
        return self.circle

    def set_enabled(self, enabled: bool, fix: Optional[LiveFix]) -> Optional[FootprintCircle]:
        self.enabled = enabled
        return self.update(fix)

    def ring(self) -> List[Tuple[float, float]]:
        """Closed ring of (lon, lat) points on the footprint edge."""
        if self.circle is None:
            return []

        delta = self.circle.radius_km / EARTH_MEAN_RADIUS_KM
        steps = int(round(360.0 / self.ring_step_deg))
        ring = []
        for i in range(steps + 1):
            lat, lon = destination_point(
                self.circle.latitude, self.circle.longitude, i * self.ring_step_deg, delta
            )
            ring.append((lon, lat))
        return ring

    def to_geometry(self) -> Optional[Dict]:
        if self.circle is None:
            return None
        return {
            "type": "Point",
            "coordinates": [self.circle.longitude, self.circle.latitude],
            "radius_km": self.circle.radius_km,
            "ring": [[lon, lat] for lon, lat in self.ring()],
        }
