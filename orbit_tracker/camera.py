"""
Map Camera State Machine

Decides whether the map view follows the tracked object or is left free.

    UNCENTERED --fix--> FOLLOWING --gesture--> FREE --reset--> FOLLOWING

A user gesture always moves to FREE; FREE only returns to FOLLOWING on an
explicit reset. The controller reads its state when each fix is applied, so
a gesture handled earlier in the same tick always wins over the re-center
the fix would otherwise produce.
"""

from enum import Enum
from typing import NamedTuple, Optional

from orbit_tracker.models import LiveFix


class CameraState(Enum):
    UNCENTERED = "Uncentered"
    FOLLOWING = "Following"
    FREE = "Free"


class CameraEvent(Enum):
    FIX = "fix"
    GESTURE = "gesture"
    RESET = "reset"


TRANSITIONS = {
    (CameraState.UNCENTERED, CameraEvent.FIX): CameraState.FOLLOWING,
    (CameraState.UNCENTERED, CameraEvent.GESTURE): CameraState.FREE,
    # Nothing to center on before the first fix
    (CameraState.UNCENTERED, CameraEvent.RESET): CameraState.UNCENTERED,
    (CameraState.FOLLOWING, CameraEvent.FIX): CameraState.FOLLOWING,
    (CameraState.FOLLOWING, CameraEvent.GESTURE): CameraState.FREE,
    (CameraState.FOLLOWING, CameraEvent.RESET): CameraState.FOLLOWING,
    (CameraState.FREE, CameraEvent.FIX): CameraState.FREE,
    (CameraState.FREE, CameraEvent.GESTURE): CameraState.FREE,
    (CameraState.FREE, CameraEvent.RESET): CameraState.FOLLOWING,
}


def transition(state: CameraState, event: CameraEvent) -> CameraState:
    return TRANSITIONS[(state, event)]


class ViewCommand(NamedTuple):
    """Instruction for the map renderer; ``zoom`` None keeps the current zoom."""

    latitude: float
    longitude: float
    zoom: Optional[float]
    animate: bool
    duration_s: float


class CameraController:
    """
    Tracks the camera state and turns fixes and user events into view commands.

    Args:
        initial_zoom: Zoom used for the first jump and for explicit resets
        follow_animation_s: Animation length of follow re-centers
        reset_animation_s: Animation length of explicit resets
    """

    def __init__(self, initial_zoom=2.6, follow_animation_s=1.2, reset_animation_s=0.8):
        self.initial_zoom = initial_zoom
        self.follow_animation_s = follow_animation_s
        self.reset_animation_s = reset_animation_s
        self.state = CameraState.UNCENTERED
        self.latest_fix: Optional[LiveFix] = None

    @property
    def following(self) -> bool:
        return self.state is CameraState.FOLLOWING

    def apply_fix(self, fix: LiveFix) -> Optional[ViewCommand]:
        previous = self.state
        self.latest_fix = fix
        self.state = transition(previous, CameraEvent.FIX)

        if previous is CameraState.UNCENTERED:
            return ViewCommand(fix.latitude, fix.longitude, self.initial_zoom, False, 0.0)
        if previous is CameraState.FOLLOWING:
            return ViewCommand(
                fix.latitude, fix.longitude, None, True, self.follow_animation_s
            )
        return None

    def on_gesture(self) -> None:
        self.state = transition(self.state, CameraEvent.GESTURE)

    def reset(self) -> Optional[ViewCommand]:
        self.state = transition(self.state, CameraEvent.RESET)
        if self.latest_fix is None:
            return None
        return ViewCommand(
            self.latest_fix.latitude,
            self.latest_fix.longitude,
            self.initial_zoom,
            True,
            self.reset_animation_s,
        )

    def toggle_follow(self) -> Optional[ViewCommand]:
        """Follow button: leave FOLLOWING like a gesture, return to it like a reset."""
        if self.state is CameraState.FREE:
            return self.reset()
        self.on_gesture()
        return None
