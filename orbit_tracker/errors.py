"""
Error taxonomy of the tracking engine.

None of these errors is fatal: the engine degrades to its last known good
state and publishes the message.
"""

from typing import Optional


# SGP4 error code meanings
SGP4_ERROR_CODES = {
    0: "No error",
    1: "Mean eccentricity < 0.0 or > 1.0",
    2: "Mean motion < 0.0",
    3: "Perturbed eccentricity < 0.0 or > 1.0",
    4: "Semi-latus rectum < 0.0",
    5: "Satellite has decayed",
    6: "Satellite has decayed (low altitude)",
}


class TrackerError(Exception):
    """Base class for recoverable tracker errors"""


class FeedError(TrackerError):
    """Telemetry feed unreachable or answered with a bad status"""


class FormatError(TrackerError):
    """Orbital element text did not contain two valid element lines"""


class PredictionError(TrackerError):
    """Propagation failed at a sample, or a scan produced no usable samples"""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code

    @classmethod
    def from_sgp4(cls, error_code: int, when) -> "PredictionError":
        meaning = SGP4_ERROR_CODES.get(error_code, f"Unknown error code {error_code}")
        return cls(f"SGP4 error {error_code} at {when.isoformat()}: {meaning}", error_code)


class LocationError(TrackerError):
    """Observer coordinates invalid, or the positioning capability refused"""
