"""
Data models shared by the tracker components.

All models are immutable: a newer value supersedes an older one wholesale.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from orbit_tracker.errors import LocationError


class LiveFix(BaseModel):
    """Live position record returned by the telemetry feed"""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)
    altitude: float = Field(allow_inf_nan=False)  # km
    velocity: float = Field(allow_inf_nan=False)  # km/h
    timestamp: datetime


class ObserverLocation(BaseModel):
    """Ground location that pass predictions are computed for"""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)

    @classmethod
    def parse(cls, latitude, longitude) -> "ObserverLocation":
        """Validate typed or positioned coordinates, raising LocationError."""
        try:
            return cls(latitude=latitude, longitude=longitude)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise LocationError(f"Invalid observer location: {problems}") from e


class OrbitalElements(BaseModel):
    """Two-line element set of the tracked object"""

    model_config = ConfigDict(frozen=True)

    line1: str
    line2: str
    norad_id: int
    epoch: datetime
    name: Optional[str] = None

    @property
    def key(self):
        return (self.line1, self.line2)


class PassWindow(BaseModel):
    """Interval during which the object stays above the elevation threshold"""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    duration_seconds: float
    max_elevation_deg: float
