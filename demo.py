"""
Live Orbit Tracker Demonstration

This script demonstrates the prediction side of the tracker without the live
telemetry loop:
- Fetching and parsing the current element set (or the offline fallback)
- Current sub-satellite point and visibility footprint
- Ground track for the next orbit, split at the antimeridian
- Upcoming passes over an observer
- Subsolar point and day/night terminator

Usage:
    python demo.py [--lat LAT --lon LON] [--offline] [--plot FILE] [--verbose]

Arguments:
    --lat/--lon: Observer location (default: Rome)
    --offline: Use the fallback TLE instead of the element feed
    --plot: Save a map of ground track and night shading to FILE
    --verbose: Enable debug logging
"""

import argparse
import logging
from datetime import datetime, timezone
from typing import List

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.patches import Polygon

from config import FALLBACK_ISS_TLE, TrackerConfig
from logging_config import configure_logging, get_logger
from orbit_tracker.ephemeris import fetch_text, parse_elements
from orbit_tracker.errors import TrackerError
from orbit_tracker.footprint import footprint_radius_km
from orbit_tracker.models import ObserverLocation, OrbitalElements
from orbit_tracker.orbit_path import OrbitPathSampler, Segment
from orbit_tracker.passes import PassPredictor
from orbit_tracker.propagator import Sgp4Propagator
from orbit_tracker.terminator import TerminatorComputer

logger = get_logger(__name__)


def load_elements(config: TrackerConfig, offline: bool) -> OrbitalElements:
    """
    Fetch the element set, falling back to the bundled TLE.

    Parameters
    ----------
    config : TrackerConfig
        Feed location and timeout
    offline : bool
        Skip the network and use the fallback TLE

    Returns
    -------
    OrbitalElements
        Parsed element set
    """
    if not offline:
        try:
            return parse_elements(fetch_text(config.elements_url, config.request_timeout_s))
        except TrackerError as e:
            logger.warning("element_feed_unavailable", error=str(e))

    logger.info("using_fallback_tle", epoch_note="may be stale")
    return parse_elements("\n".join(
        (FALLBACK_ISS_TLE['name'], FALLBACK_ISS_TLE['line1'], FALLBACK_ISS_TLE['line2'])
    ))


def demonstrate_position(propagator: Sgp4Propagator, elements: OrbitalElements,
                         config: TrackerConfig, now: datetime) -> None:
    point = propagator.subpoint(elements, now)
    radius = footprint_radius_km(point.altitude_km, config.footprint_min_elevation_deg)

    logger.info(
        f"{elements.name or elements.norad_id}: lat={point.latitude:8.3f} "
        f"lon={point.longitude:8.3f} alt={point.altitude_km:7.1f}km"
    )
    logger.info(
        f"Footprint radius at {config.footprint_min_elevation_deg:.0f} deg elevation: "
        f"{radius:.0f} km"
    )


def demonstrate_ground_track(sampler: OrbitPathSampler, elements: OrbitalElements,
                             now: datetime) -> List[Segment]:
    segments = sampler.sample(elements, now)
    logger.info(f"Ground track: {sum(len(s) for s in segments)} samples in {len(segments)} segment(s)")
    return segments


def demonstrate_passes(predictor: PassPredictor, elements: OrbitalElements,
                       observer: ObserverLocation, now: datetime) -> None:
    """
    Print the upcoming passes over an observer.

    Parameters
    ----------
    predictor : PassPredictor
        Configured pass predictor
    elements : OrbitalElements
        Element set to propagate
    observer : ObserverLocation
        Ground location
    now : datetime
        Scan start
    """
    passes = predictor.predict(elements, observer, now)

    if not passes:
        logger.info("No passes above the threshold in the lookahead window")
        return

    logger.info(f"{'Start (UTC)':^20} | {'End (UTC)':^20} | {'Dur (s)':>7} | {'Max el':>6}")
    for window in passes:
        logger.info(
            f"{window.start:%Y-%m-%d %H:%M:%S} | {window.end:%Y-%m-%d %H:%M:%S} | "
            f"{window.duration_seconds:7.0f} | {window.max_elevation_deg:6.1f}"
        )


def plot_map(segments: List[Segment], terminator: TerminatorComputer,
             observer: ObserverLocation, filename: str) -> None:
    """Save ground track, night shading and observer on an equirectangular map."""
    fig, ax = plt.subplots(figsize=(14, 7))

    snapshot = terminator.snapshot
    for outer, *day_regions in snapshot.polygons:
        # Shade the world copy, then paint the sunlit cut-out back over it
        ax.add_patch(Polygon(outer, closed=True, facecolor='#0f172a', alpha=0.35, lw=0))
        for day_region in day_regions:
            ax.add_patch(Polygon(day_region, closed=True, facecolor='white', lw=0))

    for segment in segments:
        lons, lats = zip(*segment)
        ax.plot(lons, lats, color='#0ea5e9', linewidth=2)

    ax.plot(observer.longitude, observer.latitude, 'r^', markersize=8, label='Observer')
    ax.plot(snapshot.subsolar_lon, snapshot.subsolar_lat, 'o', color='#f59e0b', label='Subsolar point')

    ax.set_xlim(-180, 180)
    ax.set_ylim(-90, 90)
    ax.set_xlabel('Longitude (deg)')
    ax.set_ylabel('Latitude (deg)')
    ax.set_title(f"Ground track and terminator at {snapshot.computed_at:%Y-%m-%d %H:%M} UTC")
    ax.grid(True, alpha=0.3)
    ax.legend(loc='lower left')

    fig.savefig(filename, dpi=150, bbox_inches='tight')
    plt.close(fig)
    logger.info(f"Map saved to {filename}")


def main():
    parser = argparse.ArgumentParser(description="Live orbit tracker prediction demo")
    parser.add_argument("--lat", type=float, default=41.9028, help="Observer latitude")
    parser.add_argument("--lon", type=float, default=12.4964, help="Observer longitude")
    parser.add_argument("--offline", action="store_true", help="Use the fallback TLE")
    parser.add_argument("--plot", metavar="FILE", help="Save a map to FILE")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = TrackerConfig.from_env()
    now = datetime.now(timezone.utc)

    try:
        observer = ObserverLocation.parse(args.lat, args.lon)
    except TrackerError as e:
        parser.error(str(e))

    elements = load_elements(config, args.offline)
    propagator = Sgp4Propagator()

    demonstrate_position(propagator, elements, config, now)
    segments = demonstrate_ground_track(
        OrbitPathSampler(propagator, config.orbit_lookahead_s, config.orbit_step_s),
        elements, now,
    )
    demonstrate_passes(
        PassPredictor(
            propagator,
            config.pass_lookahead_s,
            config.pass_step_s,
            config.pass_min_elevation_deg,
            config.pass_max_count,
        ),
        elements, observer, now,
    )

    terminator = TerminatorComputer(config.terminator_step_deg)
    snapshot = terminator.compute(now, -180.0, 180.0)
    logger.info(f"Subsolar point: lat={snapshot.subsolar_lat:.2f} lon={snapshot.subsolar_lon:.2f}")

    if args.plot:
        plot_map(segments, terminator, observer, args.plot)


if __name__ == "__main__":
    main()
