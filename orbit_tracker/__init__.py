"""
Live Orbit Tracking Engine

This package keeps a live view of a single orbiting body consistent with an
unreliable telemetry feed and predicts its future ground track and visibility
from two-line element sets using the sgp4 library.

Modules:
    ephemeris: Orbital element feed and TLE line extraction
    propagator: SGP4 propagation and look-angle geometry
    telemetry: Periodic live-position polling
    trail: Bounded history of recent live positions
    camera: Follow/free map view state machine
    footprint: Ground visibility radius of the live position
    terminator: Subsolar point and day/night boundary
    orbit_path: Future ground track sampling
    passes: Visibility window prediction for an observer
    engine: Single-owner tracker state and timer scheduling
    app: HTTP surface for the map renderer
"""

__version__ = "1.0.0"
