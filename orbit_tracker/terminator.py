"""
Day/Night Terminator

Computes the subsolar point with a low-precision solar position model and the
terminator: the great circle 90 degrees from the subsolar point.

Solar model (days n since J2000.0):
    mean longitude     L = 280.460 + 0.9856474 n
    mean anomaly       g = 357.528 + 0.9856003 n
    ecliptic longitude lambda = L + 1.915 sin g + 0.020 sin 2g
    declination        asin(sin(obliquity) sin(lambda))
    right ascension    atan2(cos(obliquity) sin(lambda), cos(lambda))
    subsolar longitude normalize(-(GMST - RA))

The canonical output is one ring of (lon, lat) points sampled every few
degrees of bearing around the subsolar point. For a horizontally repeating
map, ``night_polygons`` replicates it: for each longitude offset k*360 the
night shading is the world rectangle [k*360-180, k*360+180] x [-90, 90] with
the sunlit region cut out as a hole. A renderer that does not wrap can use
the ring alone.
"""

import logging
import math
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from config import OBLIQUITY_DEG
from orbit_tracker.geodesy import days_since_j2000, destination_point, normalize_longitude

logger = logging.getLogger(__name__)

DEFAULT_OFFSETS = (-360.0, 0.0, 360.0)

# Below this subsolar latitude the terminator is treated as a meridian pair
EQUATOR_TOLERANCE_DEG = 1e-9


def subsolar_point(when: datetime) -> Tuple[float, float]:
    """
    Point on Earth with the sun at the zenith.

    Args:
        when: Instant (UTC)

    Returns:
        Tuple of (latitude_deg, longitude_deg), longitude in (-180, 180]
    """
    n = days_since_j2000(when)

    mean_longitude = (280.460 + 0.9856474 * n) % 360.0
    mean_anomaly = math.radians((357.528 + 0.9856003 * n) % 360.0)
    ecliptic_longitude = math.radians(
        mean_longitude
        + 1.915 * math.sin(mean_anomaly)
        + 0.020 * math.sin(2.0 * mean_anomaly)
    )
    obliquity = math.radians(OBLIQUITY_DEG)

    declination = math.asin(math.sin(obliquity) * math.sin(ecliptic_longitude))
    right_ascension = math.degrees(math.atan2(
        math.cos(obliquity) * math.sin(ecliptic_longitude),
        math.cos(ecliptic_longitude),
    ))

    gmst = (280.46061837 + 360.98564736629 * n) % 360.0
    longitude = normalize_longitude(-(gmst - right_ascension))

    return math.degrees(declination), longitude


def terminator_ring(
    subsolar_lat: float, subsolar_lon: float, step_deg: float = 2.0
) -> List[Tuple[float, float]]:
    """
    Closed ring of (lon, lat) points 90 degrees from the subsolar point.

    Bearings run 0..360 inclusive, so a 2 degree step gives 181 points with
    the last equal to the first.
    """
    steps = int(round(360.0 / step_deg))
    ring = []
    for i in range(steps + 1):
        lat, lon = destination_point(subsolar_lat, subsolar_lon, i * step_deg, math.pi / 2.0)
        ring.append((lon, lat))
    return ring


def replication_offsets(west: Optional[float] = None,
                        east: Optional[float] = None) -> List[float]:
    """
    Longitude offsets whose world copy intersects the visible range.

    Without a viewport the copies either side of the primary world are used.
    """
    if west is None or east is None:
        return list(DEFAULT_OFFSETS)
    if east < west:
        west, east = east, west

    k_min = math.ceil((west - 180.0) / 360.0)
    k_max = math.floor((east + 180.0) / 360.0)
    return [360.0 * k for k in range(k_min, k_max + 1)]


def _day_region(ring: Sequence[Tuple[float, float]], subsolar_lat: float,
                offset: float) -> List[Tuple[float, float]]:
    """Sunlit region of one world copy as a closed (lon, lat) ring."""
    west = offset - 180.0
    east = offset + 180.0

    points = sorted(
        ((normalize_longitude(lon) + offset, lat) for lon, lat in ring[:-1]),
        key=lambda p: p[0],
    )

    # Latitude where the curve crosses the copy's edges, across the seam
    first_lon, first_lat = points[0]
    last_lon, last_lat = points[-1]
    gap = (first_lon + 360.0) - last_lon
    if gap > 0.0:
        t = (east - last_lon) / gap
        edge_lat = last_lat + t * (first_lat - last_lat)
    else:
        edge_lat = last_lat

    sunlit_pole = 90.0 if subsolar_lat >= 0.0 else -90.0

    return (
        [(west, edge_lat)]
        + points
        + [(east, edge_lat), (east, sunlit_pole), (west, sunlit_pole), (west, edge_lat)]
    )


def _rectangle(west: float, east: float) -> List[Tuple[float, float]]:
    return [(west, -90.0), (east, -90.0), (east, 90.0), (west, 90.0), (west, -90.0)]


def _meridian_night(subsolar_lon: float, offset: float) -> List[List[Tuple[float, float]]]:
    """
    Night shading of one world copy when the sun is over the equator.

    The terminator is then a pair of meridians through both poles, so the
    sunlit region is a 180 degree band of longitude and no pole is sunlit.
    """
    east = offset + 180.0
    day_west = normalize_longitude(subsolar_lon - 90.0) + offset
    day_east = day_west + 180.0
    if day_east <= east:
        return [_rectangle(offset - 180.0, east), _rectangle(day_west, day_east)]
    # Day band wraps the copy's edge; night is the single band between
    return [_rectangle(day_east - 360.0, day_west)]


def night_polygons(ring: Sequence[Tuple[float, float]], subsolar_lat: float,
                   subsolar_lon: float,
                   offsets: Sequence[float] = DEFAULT_OFFSETS) -> List[List[List[Tuple[float, float]]]]:
    """
    Night shading for each world copy: world rectangle minus the sunlit region.

    Returns:
        One polygon per offset, each as [outer_ring, *hole_rings]. At an
        equinox instant the polygon may be a single night band with no hole.
    """
    polygons = []
    for offset in offsets:
        if abs(subsolar_lat) < EQUATOR_TOLERANCE_DEG:
            polygons.append(_meridian_night(subsolar_lon, offset))
            continue
        outer = _rectangle(offset - 180.0, offset + 180.0)
        polygons.append([outer, _day_region(ring, subsolar_lat, offset)])
    return polygons


class TerminatorSnapshot(NamedTuple):
    computed_at: datetime
    subsolar_lat: float
    subsolar_lon: float
    ring: List[Tuple[float, float]]
    offsets: List[float]
    polygons: List[List[List[Tuple[float, float]]]]


class TerminatorComputer:
    """Recomputes the terminator for an instant and a visible longitude range"""

    def __init__(self, step_deg: float = 2.0):
        self.step_deg = step_deg
        self.snapshot: Optional[TerminatorSnapshot] = None

    def compute(self, when: datetime, west: Optional[float] = None,
                east: Optional[float] = None) -> TerminatorSnapshot:
        lat, lon = subsolar_point(when)
        ring = terminator_ring(lat, lon, self.step_deg)
        offsets = replication_offsets(west, east)

        self.snapshot = TerminatorSnapshot(
            computed_at=when,
            subsolar_lat=lat,
            subsolar_lon=lon,
            ring=ring,
            offsets=offsets,
            polygons=night_polygons(ring, lat, lon, offsets),
        )
        logger.debug(f"Subsolar point {lat:.2f}, {lon:.2f} at {when.isoformat()}")
        return self.snapshot

    def to_geometry(self) -> Optional[Dict]:
        if self.snapshot is None:
            return None
        return {
            "type": "MultiPolygon",
            "coordinates": [
                [[[lon, lat] for lon, lat in part] for part in polygon]
                for polygon in self.snapshot.polygons
            ],
            "subsolar_point": [self.snapshot.subsolar_lon, self.snapshot.subsolar_lat],
            "ring": [[lon, lat] for lon, lat in self.snapshot.ring],
        }
