"""
Tests for visibility pass prediction against a synthetic elevation curve.

Run with:
    python -m pytest tests/test_passes.py -v
"""

import unittest
from datetime import datetime, timedelta, timezone

from orbit_tracker.ephemeris import parse_elements
from orbit_tracker.errors import PredictionError
from orbit_tracker.models import ObserverLocation
from orbit_tracker.passes import PassPredictor
from orbit_tracker.propagator import LookAngles

LINE1 = "1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995"
LINE2 = "2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598"
START = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Minute offset -> elevation; everything else is below the horizon
GOLDEN_CURVE = {
    9: 5.0,
    10: 12.0,
    11: 30.0,
    12: 45.34,
    13: 20.0,
    14: 10.0,
    30: 10.5,
    31: 11.26,
    32: 5.0,
    59: 15.0,
    60: 20.0,
}


class CurvePropagator:
    """Serves elevations from a minute-indexed table."""

    def __init__(self, curve, failing_minutes=(), default=-30.0):
        self.curve = curve
        self.failing_minutes = set(failing_minutes)
        self.default = default

    def look_angles(self, elements, observer, when):
        minute = int((when - START).total_seconds() // 60)
        if minute in self.failing_minutes:
            raise PredictionError(f"SGP4 error 1 at minute {minute}", 1)
        return LookAngles(self.curve.get(minute, self.default), 180.0, 1500.0)


class TestPassPredictor(unittest.TestCase):
    """Edge detection over the sampled elevation."""

    def setUp(self):
        self.elements = parse_elements(f"{LINE1}\n{LINE2}")
        self.observer = ObserverLocation(latitude=41.9, longitude=12.5)

    def predictor(self, propagator, **kwargs):
        options = dict(lookahead_s=3600.0, step_s=60.0, min_elevation_deg=10.0, max_passes=5)
        options.update(kwargs)
        return PassPredictor(propagator, **options)

    def test_golden_curve(self):
        passes = self.predictor(CurvePropagator(GOLDEN_CURVE)).predict(
            self.elements, self.observer, START
        )

        self.assertEqual(len(passes), 2)

        first, second = passes
        self.assertEqual(first.start, START + timedelta(minutes=10))
        self.assertEqual(first.end, START + timedelta(minutes=14))
        self.assertEqual(first.duration_seconds, 240.0)
        self.assertEqual(first.max_elevation_deg, 45.3)

        self.assertEqual(second.start, START + timedelta(minutes=30))
        self.assertEqual(second.end, START + timedelta(minutes=32))
        self.assertEqual(second.duration_seconds, 120.0)
        self.assertEqual(second.max_elevation_deg, 11.3)

    def test_pass_invariants(self):
        passes = self.predictor(CurvePropagator(GOLDEN_CURVE)).predict(
            self.elements, self.observer, START
        )
        for window in passes:
            self.assertLess(window.start, window.end)
            self.assertEqual(window.duration_seconds, (window.end - window.start).total_seconds())
            self.assertGreater(window.max_elevation_deg, 10.0)
        for earlier, later in zip(passes, passes[1:]):
            self.assertLessEqual(earlier.end, later.start)

    def test_cap(self):
        passes = self.predictor(CurvePropagator(GOLDEN_CURVE), max_passes=1).predict(
            self.elements, self.observer, START
        )
        self.assertEqual(len(passes), 1)
        self.assertEqual(passes[0].start, START + timedelta(minutes=10))

    def test_pass_open_at_scan_end_discarded(self):
        curve = {58: 30.0, 59: 40.0, 60: 50.0}
        passes = self.predictor(CurvePropagator(curve)).predict(
            self.elements, self.observer, START
        )
        self.assertEqual(passes, [])

    def test_pass_in_progress_at_start(self):
        curve = {0: 50.0, 1: 40.0, 2: -1.0}
        passes = self.predictor(CurvePropagator(curve)).predict(
            self.elements, self.observer, START
        )
        self.assertEqual(len(passes), 1)
        self.assertEqual(passes[0].start, START)
        self.assertEqual(passes[0].end, START + timedelta(minutes=2))
        self.assertEqual(passes[0].max_elevation_deg, 50.0)

    def test_threshold_is_strict(self):
        curve = {5: 10.0, 6: 10.0}
        passes = self.predictor(CurvePropagator(curve)).predict(
            self.elements, self.observer, START
        )
        self.assertEqual(passes, [])

    def test_no_passes(self):
        passes = self.predictor(CurvePropagator({})).predict(
            self.elements, self.observer, START
        )
        self.assertEqual(passes, [])

    def test_failed_samples_skipped(self):
        passes = self.predictor(CurvePropagator(GOLDEN_CURVE, failing_minutes={12})).predict(
            self.elements, self.observer, START
        )
        self.assertEqual(len(passes), 2)
        self.assertEqual(passes[0].duration_seconds, 240.0)
        self.assertEqual(passes[0].max_elevation_deg, 30.0)

    def test_every_sample_failing(self):
        predictor = self.predictor(CurvePropagator({}, failing_minutes=range(61)))
        with self.assertRaises(PredictionError):
            predictor.predict(self.elements, self.observer, START)

    def test_higher_threshold(self):
        passes = self.predictor(CurvePropagator(GOLDEN_CURVE), min_elevation_deg=25.0).predict(
            self.elements, self.observer, START
        )
        self.assertEqual(len(passes), 1)
        self.assertEqual(passes[0].start, START + timedelta(minutes=11))
        self.assertEqual(passes[0].end, START + timedelta(minutes=13))


if __name__ == '__main__':
    unittest.main()
