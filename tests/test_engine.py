"""
End-to-end tests of the tracker engine with stubbed feeds and propagation.

Run with:
    python -m pytest tests/test_engine.py -v
"""

import asyncio
import json
import unittest
from datetime import datetime, timedelta, timezone

from config import TrackerConfig
from orbit_tracker.camera import CameraState
from orbit_tracker.engine import TrackerEngine
from orbit_tracker.errors import FeedError, LocationError, PredictionError
from orbit_tracker.propagator import GroundPoint, LookAngles

LINE1 = "1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995"
LINE2 = "2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598"
TLE_TEXT = f"ISS (ZARYA)\n{LINE1}\n{LINE2}\n"
START = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

# One pass from minute 10 to minute 13 peaking at 41.2 degrees
ELEVATIONS = {10: 15.0, 11: 41.2, 12: 25.0, 13: 3.0}


class FakePropagator:
    """Deterministic ground track and elevation curve keyed on minutes since START."""

    fail = False

    def _minute(self, when):
        if self.fail:
            raise PredictionError("SGP4 error 6", 6)
        return int((when - START).total_seconds() // 60)

    def subpoint(self, elements, when):
        minute = self._minute(when)
        return GroundPoint(latitude=0.0, longitude=-170.0 + 4.0 * minute, altitude_km=420.0)

    def look_angles(self, elements, observer, when):
        return LookAngles(ELEVATIONS.get(self._minute(when), -20.0), 90.0, 1200.0)


def live_record(lat, lon):
    return {
        "latitude": lat,
        "longitude": lon,
        "altitude": 420.0,
        "velocity": 27600.0,
        "timestamp": 1709294400,
    }


class EngineTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.telemetry = []
        self.config = TrackerConfig(
            pass_lookahead_s=3600.0,
            orbit_lookahead_s=600.0,
            poll_interval_s=3600.0,
        )
        self.engine = TrackerEngine(
            self.config,
            telemetry_fetch=self.fetch_telemetry,
            elements_fetch=lambda url, timeout: TLE_TEXT,
            propagator_factory=FakePropagator,
            clock=lambda: START,
        )

    def fetch_telemetry(self, url, timeout):
        response = self.telemetry.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def asyncTearDown(self):
        await self.engine.stop()

    async def drain(self):
        """Let spawned engine tasks finish."""
        for _ in range(50):
            pending = [t for t in self.engine._tasks if not t.done()]
            if not pending:
                return
            await asyncio.wait(pending, timeout=0.1)


class TestTelemetryFlow(EngineTestCase):
    """Trail, status and camera driven by successive poll cycles."""

    async def test_alternating_success_and_failure(self):
        self.telemetry.extend([
            live_record(1.0, 10.0),
            FeedError("Request failed with 500"),
            live_record(2.0, 11.0),
            FeedError("Request failed with 502"),
            live_record(3.0, 12.0),
        ])

        expected = [(1, None), (1, "Request failed with 500"), (2, None),
                    (2, "Request failed with 502"), (3, None)]
        for trail_length, feed_error in expected:
            await self.engine.poller.poll_once()
            status = self.engine.snapshot()["status"]
            self.assertEqual(len(self.engine.trail), trail_length)
            self.assertEqual(status["feed_error"], feed_error)
            self.assertFalse(status["loading"])

        self.assertEqual(self.engine.trail.points(), [(10.0, 1.0), (11.0, 2.0), (12.0, 3.0)])
        self.assertEqual(self.engine.snapshot()["live_fix"]["latitude"], 3.0)

    async def test_first_fix_jumps_then_follows(self):
        self.telemetry.extend([live_record(1.0, 10.0), live_record(2.0, 11.0)])

        await self.engine.poller.poll_once()
        view = self.engine.snapshot()["view"]
        self.assertEqual(view["zoom"], 2.6)
        self.assertFalse(view["animate"])
        self.assertEqual(view["sequence"], 1)

        await self.engine.poller.poll_once()
        view = self.engine.snapshot()["view"]
        self.assertIsNone(view["zoom"])
        self.assertTrue(view["animate"])
        self.assertEqual(view["duration_s"], 1.2)
        self.assertEqual(view["sequence"], 2)

    async def test_gesture_wins_over_recenter(self):
        self.telemetry.extend([live_record(1.0, 10.0), live_record(2.0, 11.0)])
        await self.engine.poller.poll_once()

        self.engine.on_gesture()
        await self.engine.poller.poll_once()

        snapshot = self.engine.snapshot()
        self.assertEqual(snapshot["status"]["camera_state"], CameraState.FREE.value)
        self.assertEqual(snapshot["view"]["sequence"], 1)
        # The trail keeps growing while the camera is free
        self.assertEqual(len(self.engine.trail), 2)

        self.engine.reset_view()
        view = self.engine.snapshot()["view"]
        self.assertEqual((view["latitude"], view["longitude"]), (2.0, 11.0))
        self.assertEqual(view["zoom"], 2.6)
        self.assertEqual(view["duration_s"], 0.8)
        self.assertTrue(self.engine.camera.following)

    async def test_footprint_follows_fix(self):
        self.telemetry.extend([live_record(1.0, 10.0), live_record(2.0, 11.0)])
        await self.engine.poller.poll_once()

        self.assertIsNone(self.engine.snapshot()["geometry"]["footprint"])
        self.engine.set_footprint_enabled(True)
        footprint = self.engine.snapshot()["geometry"]["footprint"]
        self.assertEqual(footprint["coordinates"], [10.0, 1.0])
        self.assertAlmostEqual(footprint["radius_km"], 908.0, delta=2.0)

        await self.engine.poller.poll_once()
        self.assertEqual(self.engine.snapshot()["geometry"]["footprint"]["coordinates"], [11.0, 2.0])


class TestPredictions(EngineTestCase):
    """Elements, ground track and passes."""

    async def test_elements_drive_ground_track(self):
        await self.engine.refresh_elements()

        status = self.engine.snapshot()["status"]
        self.assertEqual(status["norad_id"], 25544)
        self.assertTrue(status["elements_epoch"].startswith("2023-09-16"))
        self.assertIsNotNone(status["elements_refreshed"])

        orbit = self.engine.snapshot()["geometry"]["orbit"]
        self.assertEqual(len(orbit["coordinates"]), 1)
        self.assertEqual(len(orbit["coordinates"][0]), 11)

    async def test_observer_triggers_passes(self):
        await self.engine.refresh_elements()
        self.engine.set_observer(41.9, 12.5)
        await self.drain()

        passes = self.engine.snapshot()["passes"]
        self.assertEqual(len(passes), 1)
        self.assertEqual(passes[0]["duration_seconds"], 180.0)
        self.assertEqual(passes[0]["max_elevation_deg"], 41.2)
        self.assertEqual(self.engine.passes[0].start, START + timedelta(minutes=10))

    async def test_invalid_observer_keeps_state(self):
        await self.engine.refresh_elements()
        self.engine.set_observer(41.9, 12.5)
        await self.drain()
        passes = list(self.engine.passes)

        with self.assertRaises(LocationError):
            self.engine.set_observer(95.0, 12.5)

        self.assertEqual(self.engine.observer.latitude, 41.9)
        self.assertEqual(self.engine.passes, passes)
        self.assertIn("Invalid observer location", self.engine.location_error)

        self.engine.set_observer(-33.9, 151.2)
        self.assertIsNone(self.engine.location_error)

    async def test_positioning_failure(self):
        async def refuse():
            raise PermissionError("denied")

        with self.assertRaises(LocationError):
            await self.engine.locate_observer(refuse)
        self.assertIsNone(self.engine.observer)
        self.assertTrue(self.engine.location_error.startswith("Positioning failed"))

        async def locate():
            return 51.5, -0.1

        observer = await self.engine.locate_observer(locate)
        self.assertEqual((observer.latitude, observer.longitude), (51.5, -0.1))

    async def test_orbit_error_published(self):
        await self.engine.refresh_elements()
        previous = self.engine.snapshot()["geometry"]["orbit"]

        self.engine.orbit_sampler.propagator.fail = True
        self.engine.refresh_orbit()

        snapshot = self.engine.snapshot()
        self.assertIsNotNone(snapshot["status"]["orbit_error"])
        self.assertIsNone(snapshot["status"]["pass_error"])
        self.assertEqual(snapshot["geometry"]["orbit"], previous)

    async def test_pass_error_survives_ground_track_refresh(self):
        await self.engine.refresh_elements()
        self.engine.set_observer(41.9, 12.5)
        await self.drain()

        self.engine.pass_predictor.propagator.fail = True
        await self.engine.refresh_passes()
        self.assertIn("No usable pass samples", self.engine.snapshot()["status"]["pass_error"])

        self.engine.refresh_orbit()

        status = self.engine.snapshot()["status"]
        self.assertIsNone(status["orbit_error"])
        self.assertIn("No usable pass samples", status["pass_error"])
        self.assertEqual(len(self.engine.passes), 1)

        self.engine.pass_predictor.propagator.fail = False
        await self.engine.refresh_passes()
        self.assertIsNone(self.engine.snapshot()["status"]["pass_error"])

    async def test_element_feed_failure_keeps_elements(self):
        await self.engine.refresh_elements()
        epoch = self.engine.ephemeris.elements.epoch

        def down(url, timeout):
            raise FeedError("Element feed request failed: timeout")

        self.engine.ephemeris.fetch = down
        await self.engine.refresh_elements()

        status = self.engine.snapshot()["status"]
        self.assertEqual(self.engine.ephemeris.elements.epoch, epoch)
        self.assertIn("timeout", status["elements_error"])


class TestOverlaysAndLifecycle(EngineTestCase):
    """Terminator, snapshot serialization and start/stop."""

    async def test_viewport_change_recomputes_terminator(self):
        self.engine.refresh_terminator()
        self.assertEqual(len(self.engine.snapshot()["geometry"]["night"]["coordinates"]), 3)

        self.engine.on_viewport_change(-10.0, 10.0)
        self.assertEqual(len(self.engine.snapshot()["geometry"]["night"]["coordinates"]), 1)

    async def test_snapshot_is_json_serializable(self):
        self.telemetry.append(live_record(1.0, 10.0))
        await self.engine.poller.poll_once()
        await self.engine.refresh_elements()
        self.engine.set_observer(41.9, 12.5)
        await self.drain()
        self.engine.set_footprint_enabled(True)
        self.engine.refresh_terminator()

        decoded = json.loads(json.dumps(self.engine.snapshot()))
        self.assertEqual(decoded["geometry"]["position"]["coordinates"], [10.0, 1.0])

    async def test_start_and_stop(self):
        self.engine.config.poll_interval_s = 0.05
        self.engine.poller.interval = 0.05
        self.telemetry.extend(live_record(float(i), float(i)) for i in range(100))

        await self.engine.start()
        for _ in range(100):
            ready = (
                len(self.engine.trail) >= 2
                and self.engine.ephemeris.elements is not None
                and self.engine.terminator.snapshot is not None
            )
            if ready:
                break
            await asyncio.sleep(0.02)

        self.assertGreaterEqual(len(self.engine.trail), 2)
        self.assertIsNotNone(self.engine.ephemeris.elements)
        self.assertIsNotNone(self.engine.terminator.snapshot)

        await self.engine.stop()
        self.assertFalse(self.engine.poller.running)
        trail_length = len(self.engine.trail)
        await asyncio.sleep(0.15)
        self.assertEqual(len(self.engine.trail), trail_length)

    async def test_restart_accepts_element_refresh(self):
        self.telemetry.extend(live_record(0.0, 0.0) for _ in range(4))

        await self.engine.start()
        await self.engine.stop()
        await self.engine.start()

        elements = await self.engine.ephemeris.refresh()
        self.assertIsNotNone(elements)
        self.assertIs(self.engine.ephemeris.elements, elements)
        self.assertEqual(elements.norad_id, 25544)
        self.assertIsNone(self.engine.snapshot()["status"]["elements_error"])

    async def test_fallback_elements_seeded(self):
        self.engine.config.use_fallback_tle = True

        def down(url, timeout):
            raise FeedError("Element feed request failed: unreachable")

        self.engine.ephemeris.fetch = down
        self.telemetry.append(live_record(0.0, 0.0))

        await self.engine.start()
        await asyncio.sleep(0.05)

        self.assertEqual(self.engine.ephemeris.elements.norad_id, 25544)
        self.assertEqual(self.engine.ephemeris.elements.name, "ISS (ZARYA)")


if __name__ == '__main__':
    unittest.main()
