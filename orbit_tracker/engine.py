"""
Tracker Engine

Single owner of the tracker's mutable state. Everything runs on one asyncio
event loop:

- telemetry poll timer      -> trail, camera, footprint
- element refresh timer     -> ground track, passes
- ground track resample timer
- terminator refresh timer  (also on viewport changes)
- user events: gestures, view reset/follow, observer, footprint toggle

Network requests and the pass scan run in executors and are applied back on
the loop only if they were not superseded by a newer request or by stop().
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from config import FALLBACK_ISS_TLE, TrackerConfig
from logging_config import get_logger
from orbit_tracker.camera import CameraController, ViewCommand
from orbit_tracker.ephemeris import EphemerisSource
from orbit_tracker.errors import LocationError, PredictionError
from orbit_tracker.footprint import FootprintComputer
from orbit_tracker.models import LiveFix, ObserverLocation, PassWindow
from orbit_tracker.orbit_path import OrbitPathSampler
from orbit_tracker.passes import PassPredictor
from orbit_tracker.propagator import Sgp4Propagator
from orbit_tracker.telemetry import TelemetryPoller
from orbit_tracker.terminator import TerminatorComputer
from orbit_tracker.trail import TrailBuffer

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackerEngine:
    """
    Live tracker state and scheduling.

    Args:
        config: Engine configuration (defaults to TrackerConfig())
        telemetry_fetch: Override of the live feed request (url, timeout) -> dict
        elements_fetch: Override of the element feed request (url, timeout) -> str
        propagator_factory: Builds a propagator for each sampler (default SGP4)
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        telemetry_fetch=None,
        elements_fetch=None,
        propagator_factory: Callable[[], Any] = Sgp4Propagator,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config or TrackerConfig()
        self.clock = clock
        cfg = self.config

        self.trail = TrailBuffer(cfg.trail_max_points)
        self.camera = CameraController(
            cfg.initial_zoom, cfg.follow_animation_s, cfg.reset_animation_s
        )
        self.footprint = FootprintComputer(cfg.footprint_min_elevation_deg)
        self.terminator = TerminatorComputer(cfg.terminator_step_deg)
        self.orbit_sampler = OrbitPathSampler(
            propagator_factory(), cfg.orbit_lookahead_s, cfg.orbit_step_s
        )
        # Own propagator: the scan runs on the executor thread
        self.pass_predictor = PassPredictor(
            propagator_factory(),
            cfg.pass_lookahead_s,
            cfg.pass_step_s,
            cfg.pass_min_elevation_deg,
            cfg.pass_max_count,
        )
        self.ephemeris = EphemerisSource(
            cfg.elements_url, cfg.request_timeout_s, fetch=elements_fetch
        )
        self.poller = TelemetryPoller(
            cfg.telemetry_url,
            cfg.poll_interval_s,
            cfg.request_timeout_s,
            fetch=telemetry_fetch,
            on_fix=self._apply_fix,
        )

        self.observer: Optional[ObserverLocation] = None
        self.passes: List[PassWindow] = []
        self.viewport: Optional[Tuple[float, float]] = None
        self.view_command: Optional[ViewCommand] = None
        self.view_sequence = 0
        # Each scan clears only its own error
        self.orbit_error: Optional[str] = None
        self.pass_error: Optional[str] = None
        self.location_error: Optional[str] = None

        self._pass_generation = 0
        self._tasks: Set[asyncio.Task] = set()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        cfg = self.config
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pass-scan")
        self.ephemeris.open()

        if cfg.use_fallback_tle and self.ephemeris.elements is None:
            self.ephemeris.seed(
                FALLBACK_ISS_TLE['line1'], FALLBACK_ISS_TLE['line2'], FALLBACK_ISS_TLE['name']
            )
            self._on_elements_changed()

        self.poller.start()
        self._spawn(self._every(cfg.elements_refresh_s, self.refresh_elements, "elements"))
        self._spawn(self._every(cfg.orbit_resample_s, self.refresh_orbit, "orbit"))
        self._spawn(self._every(cfg.terminator_refresh_s, self.refresh_terminator, "terminator"))
        logger.info("engine_started", norad_id=cfg.norad_id)

    async def stop(self) -> None:
        """Clear every timer; in-flight requests resolve as no-ops."""
        self._closed = True
        self.ephemeris.close()
        await self.poller.stop()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logger.info("engine_stopped", cancelled=len(tasks))

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _every(self, interval: float, action: Callable, name: str) -> None:
        while True:
            try:
                result = action()
                if asyncio.iscoroutine(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("timer_callback_failed", timer=name)
            await asyncio.sleep(interval)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def _apply_fix(self, fix: LiveFix) -> None:
        self.trail.append((fix.longitude, fix.latitude))
        # Camera state is read here, after any gesture already handled this tick
        self._set_view(self.camera.apply_fix(fix))
        self.footprint.update(fix)

    def _set_view(self, command: Optional[ViewCommand]) -> None:
        if command is not None:
            self.view_command = command
            self.view_sequence += 1

    # ------------------------------------------------------------------
    # Orbital elements and predictions
    # ------------------------------------------------------------------

    async def refresh_elements(self) -> None:
        if await self.ephemeris.refresh() is not None:
            self._on_elements_changed()

    def _on_elements_changed(self) -> None:
        self.refresh_orbit()
        self._schedule_passes()

    def refresh_orbit(self) -> None:
        elements = self.ephemeris.elements
        if elements is None:
            return
        try:
            self.orbit_sampler.sample(elements, self.clock())
        except PredictionError as e:
            self.orbit_error = str(e)
            logger.error("ground_track_failed", error=str(e))
            return
        self.orbit_error = None

    def _schedule_passes(self) -> None:
        if self.ephemeris.elements is None or self.observer is None:
            return
        self._spawn(self.refresh_passes())

    async def refresh_passes(self) -> None:
        """Regenerate passes for the current observer and elements."""
        elements = self.ephemeris.elements
        observer = self.observer
        if elements is None or observer is None:
            return

        self._pass_generation += 1
        generation = self._pass_generation

        loop = asyncio.get_running_loop()
        try:
            passes = await loop.run_in_executor(
                self._executor, self.pass_predictor.predict, elements, observer, self.clock()
            )
        except PredictionError as e:
            if self._pass_superseded(generation):
                return
            self.pass_error = str(e)
            logger.error("pass_prediction_failed", error=str(e))
            return

        if self._pass_superseded(generation):
            logger.debug("pass_prediction_superseded", generation=generation)
            return

        self.passes = passes
        self.pass_error = None
        logger.info("passes_updated", count=len(passes))

    def _pass_superseded(self, generation: int) -> bool:
        return self._closed or generation != self._pass_generation

    # ------------------------------------------------------------------
    # Observer
    # ------------------------------------------------------------------

    def set_observer(self, latitude, longitude) -> ObserverLocation:
        """
        Make a typed or positioned location the active observer.

        Raises:
            LocationError: Coordinates outside [-90, 90] x [-180, 180]; the
                previous observer and passes are kept
        """
        try:
            observer = ObserverLocation.parse(latitude, longitude)
        except LocationError as e:
            self.location_error = str(e)
            logger.warning("observer_rejected", error=str(e))
            raise

        self.location_error = None
        self.observer = observer
        self.passes = []
        self._schedule_passes()
        logger.info("observer_set", latitude=observer.latitude, longitude=observer.longitude)
        return observer

    async def locate_observer(
        self, positioning: Callable[[], Awaitable[Tuple[float, float]]]
    ) -> ObserverLocation:
        """Ask the positioning capability for a location and make it active."""
        try:
            latitude, longitude = await positioning()
        except LocationError as e:
            self.location_error = str(e)
            raise
        except Exception as e:
            self.location_error = f"Positioning failed: {e}"
            logger.warning("positioning_failed", error=str(e))
            raise LocationError(self.location_error) from e
        return self.set_observer(latitude, longitude)

    # ------------------------------------------------------------------
    # View and overlays
    # ------------------------------------------------------------------

    def on_gesture(self) -> None:
        self.camera.on_gesture()

    def reset_view(self) -> None:
        self._set_view(self.camera.reset())

    def toggle_follow(self) -> None:
        self._set_view(self.camera.toggle_follow())

    def set_footprint_enabled(self, enabled: bool) -> None:
        self.footprint.set_enabled(enabled, self.poller.latest_fix)

    def on_viewport_change(self, west: float, east: float) -> None:
        self.viewport = (west, east)
        self.refresh_terminator()

    def refresh_terminator(self) -> None:
        west, east = self.viewport or (None, None)
        self.terminator.compute(self.clock(), west, east)

    # ------------------------------------------------------------------
    # Render state
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Render-ready state for the map renderer."""
        fix = self.poller.latest_fix
        elements = self.ephemeris.elements
        feed_error = self.poller.last_error
        elements_error = self.ephemeris.last_error
        last_updated = self.poller.last_updated
        elements_refreshed = self.ephemeris.last_refreshed

        view = None
        if self.view_command is not None:
            view = dict(self.view_command._asdict(), sequence=self.view_sequence)

        return {
            "status": {
                "loading": self.poller.loading,
                "last_updated": last_updated.isoformat() if last_updated else None,
                "feed_error": str(feed_error) if feed_error else None,
                "elements_error": str(elements_error) if elements_error else None,
                "orbit_error": self.orbit_error,
                "pass_error": self.pass_error,
                "location_error": self.location_error,
                "camera_state": self.camera.state.value,
                "following": self.camera.following,
                "footprint_enabled": self.footprint.enabled,
                "norad_id": elements.norad_id if elements else self.config.norad_id,
                "elements_epoch": elements.epoch.isoformat() if elements else None,
                "elements_refreshed": (
                    elements_refreshed.isoformat() if elements_refreshed else None
                ),
            },
            "live_fix": fix.model_dump(mode="json") if fix else None,
            "view": view,
            "geometry": {
                "position": (
                    {"type": "Point", "coordinates": [fix.longitude, fix.latitude]}
                    if fix else None
                ),
                "trail": self.trail.to_geometry(),
                "orbit": self.orbit_sampler.to_geometry(),
                "footprint": self.footprint.to_geometry(),
                "night": self.terminator.to_geometry(),
            },
            "observer": self.observer.model_dump() if self.observer else None,
            "passes": [p.model_dump(mode="json") for p in self.passes],
        }
