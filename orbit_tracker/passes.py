"""
Visibility Pass Prediction

Scans the propagator over a long future window against a ground observer and
reports the intervals during which the object stays above an elevation
threshold.

Edge detection on the sampled elevation:
- rising above the threshold opens a candidate window and resets the
  running maximum elevation
- while above, the running maximum is tracked
- falling back to or below the threshold closes the window at that sample

The scan stops once ``max_passes`` windows are collected or the lookahead
ends. A window still open at the end of the lookahead is discarded because
its true end is unknown. A window already open at the first sample starts at
that sample.

Predictions are regenerated wholesale; there is no incremental update.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from orbit_tracker.errors import PredictionError
from orbit_tracker.models import ObserverLocation, OrbitalElements, PassWindow
from orbit_tracker.propagator import Sgp4Propagator

logger = logging.getLogger(__name__)


class PassPredictor:
    """
    Finds upcoming visibility windows for an observer.

    Args:
        propagator: Propagation capability providing ``look_angles``
        lookahead_s: Scan length in seconds
        step_s: Sampling step in seconds; start/end times are resolved to it
        min_elevation_deg: Elevation a pass must exceed
        max_passes: Stop after this many windows
    """

    def __init__(
        self,
        propagator=None,
        lookahead_s: float = 24 * 3600.0,
        step_s: float = 60.0,
        min_elevation_deg: float = 10.0,
        max_passes: int = 5,
    ):
        self.propagator = propagator or Sgp4Propagator()
        self.lookahead_s = lookahead_s
        self.step_s = step_s
        self.min_elevation_deg = min_elevation_deg
        self.max_passes = max_passes

    def predict(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        start: Optional[datetime] = None,
    ) -> List[PassWindow]:
        """
        Predict passes from ``start`` (default: now) over the lookahead.

        Returns:
            Chronological list of at most ``max_passes`` windows; empty when
            no qualifying pass exists

        Raises:
            PredictionError: Every sample of the scan failed to propagate
        """
        start = start or datetime.now(timezone.utc)
        steps = int(self.lookahead_s // self.step_s)

        passes: List[PassWindow] = []
        pass_start = None
        max_elevation = 0.0
        usable = 0
        skipped = 0

        for i in range(steps + 1):
            when = start + timedelta(seconds=i * self.step_s)
            try:
                angles = self.propagator.look_angles(elements, observer, when)
            except PredictionError as e:
                skipped += 1
                logger.debug(f"Skipping pass sample at {when.isoformat()}: {e}")
                continue
            usable += 1

            elevation = angles.elevation_deg
            if elevation > self.min_elevation_deg:
                if pass_start is None:
                    pass_start = when
                    max_elevation = elevation
                else:
                    max_elevation = max(max_elevation, elevation)
                continue

            if pass_start is not None:
                passes.append(PassWindow(
                    start=pass_start,
                    end=when,
                    duration_seconds=(when - pass_start).total_seconds(),
                    max_elevation_deg=round(max_elevation, 1),
                ))
                pass_start = None
                if len(passes) >= self.max_passes:
                    break

        if usable == 0:
            raise PredictionError(f"No usable pass samples ({skipped} failed)")

        if pass_start is not None:
            logger.debug(f"Discarding pass still open at scan end (started {pass_start.isoformat()})")

        logger.info(
            f"Predicted {len(passes)} pass(es) for ({observer.latitude:.3f}, "
            f"{observer.longitude:.3f}); skipped {skipped} sample(s)"
        )
        return passes
