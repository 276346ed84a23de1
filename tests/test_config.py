"""
Tests for tracker configuration defaults and environment overrides.

Run with:
    python -m pytest tests/test_config.py -v
"""

import unittest

from pydantic import ValidationError

from config import FALLBACK_ISS_TLE, TrackerConfig


class TestTrackerConfig(unittest.TestCase):

    def test_defaults(self):
        config = TrackerConfig()
        self.assertEqual(config.norad_id, 25544)
        self.assertEqual(config.poll_interval_s, 5.0)
        self.assertEqual(config.trail_max_points, 200)
        self.assertEqual(config.elements_refresh_s, 7200.0)
        self.assertEqual(config.pass_lookahead_s, 86400.0)
        self.assertEqual(config.pass_step_s, 60.0)
        self.assertEqual(config.pass_min_elevation_deg, 10.0)
        self.assertEqual(config.pass_max_count, 5)
        self.assertEqual(config.orbit_lookahead_s, 5400.0)
        self.assertEqual(config.terminator_step_deg, 2.0)
        self.assertEqual(config.footprint_min_elevation_deg, 20.0)
        self.assertIn("25544", config.telemetry_url)
        self.assertIn("CATNR=25544", config.elements_url)

    def test_from_env(self):
        config = TrackerConfig.from_env({
            "TRACKER_POLL_INTERVAL_S": "2.5",
            "TRACKER_TRAIL_MAX_POINTS": "50",
            "TRACKER_USE_FALLBACK_TLE": "true",
            "UNRELATED": "ignored",
        })
        self.assertEqual(config.poll_interval_s, 2.5)
        self.assertEqual(config.trail_max_points, 50)
        self.assertTrue(config.use_fallback_tle)
        self.assertEqual(config.pass_max_count, 5)

    def test_from_env_rejects_bad_values(self):
        with self.assertRaises(ValidationError):
            TrackerConfig.from_env({"TRACKER_TRAIL_MAX_POINTS": "0"})
        with self.assertRaises(ValidationError):
            TrackerConfig.from_env({"TRACKER_POLL_INTERVAL_S": "soon"})

    def test_feed_urls_must_be_http(self):
        with self.assertRaises(ValidationError):
            TrackerConfig(telemetry_url="ftp://example.test/iss")

    def test_fallback_tle_lines(self):
        self.assertEqual(len(FALLBACK_ISS_TLE['line1']), 69)
        self.assertEqual(len(FALLBACK_ISS_TLE['line2']), 69)
        self.assertTrue(FALLBACK_ISS_TLE['line1'].startswith("1 25544"))
        self.assertTrue(FALLBACK_ISS_TLE['line2'].startswith("2 25544"))


if __name__ == '__main__':
    unittest.main()
