"""
Future ground track sampling.

The track is split into segments wherever consecutive samples jump more than
180 degrees of longitude, so no rendered line crosses the whole map at the
antimeridian.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from orbit_tracker.errors import PredictionError
from orbit_tracker.geodesy import normalize_longitude
from orbit_tracker.models import OrbitalElements
from orbit_tracker.propagator import Sgp4Propagator

logger = logging.getLogger(__name__)

Segment = List[Tuple[float, float]]


class OrbitPathSampler:
    """
    Samples the propagator over a short future window.

    Args:
        propagator: Propagation capability (defaults to SGP4)
        lookahead_s: Length of the window in seconds
        step_s: Sampling step in seconds
    """

    def __init__(self, propagator=None, lookahead_s: float = 90 * 60.0, step_s: float = 60.0):
        self.propagator = propagator or Sgp4Propagator()
        self.lookahead_s = lookahead_s
        self.step_s = step_s
        self.segments: List[Segment] = []

    def sample(self, elements: OrbitalElements, start: Optional[datetime] = None) -> List[Segment]:
        """
        Build the ground track from ``start`` to ``start + lookahead``.

        Returns:
            Segments of (lon, lat) points, none spanning the antimeridian

        Raises:
            PredictionError: No sample in the window could be propagated;
                the previous segments are left in place
        """
        start = start or datetime.now(timezone.utc)
        steps = int(self.lookahead_s // self.step_s)

        segments: List[Segment] = []
        current: Segment = []
        previous_lon = None
        skipped = 0

        for i in range(steps + 1):
            when = start + timedelta(seconds=i * self.step_s)
            try:
                point = self.propagator.subpoint(elements, when)
            except PredictionError as e:
                skipped += 1
                logger.debug(f"Skipping ground track sample at {when.isoformat()}: {e}")
                continue

            lon = normalize_longitude(point.longitude)
            if previous_lon is not None and abs(lon - previous_lon) > 180.0:
                segments.append(current)
                current = []
            current.append((lon, point.latitude))
            previous_lon = lon

        if current:
            segments.append(current)

        if not segments:
            raise PredictionError(f"No usable ground track samples ({skipped} failed)")
        if skipped:
            logger.warning(f"Ground track skipped {skipped} of {steps + 1} samples")

        self.segments = segments
        return segments

    def to_geometry(self) -> Dict:
        return {
            "type": "MultiLineString",
            "coordinates": [[[lon, lat] for lon, lat in segment] for segment in self.segments],
        }
