"""
Bounded history of recent live positions.
"""

from collections import deque
from typing import Dict, List, Tuple

# (longitude, latitude)
TrailPoint = Tuple[float, float]


class TrailBuffer:
    """FIFO buffer of (lon, lat) points capped at ``max_points``"""

    def __init__(self, max_points: int = 200):
        if max_points < 1:
            raise ValueError(f"max_points must be >= 1, got {max_points}")
        self.max_points = max_points
        self._points = deque(maxlen=max_points)

    def append(self, point: TrailPoint) -> None:
        lon, lat = point
        self._points.append((float(lon), float(lat)))

    def points(self) -> List[TrailPoint]:
        return list(self._points)

    def to_geometry(self) -> Dict:
        """GeoJSON LineString of the trail, oldest point first."""
        return {
            "type": "LineString",
            "coordinates": [[lon, lat] for lon, lat in self._points],
        }

    def __len__(self) -> int:
        return len(self._points)
