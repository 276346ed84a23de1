"""
Live Tracker HTTP Surface

Serves the engine's render state to the map renderer and receives its view,
gesture and observer notifications.

The engine keeps running on its own asyncio loop in a background thread;
request handlers hand every call over to that loop so engine state is only
ever touched from one thread.
"""

import asyncio
import logging
import threading
import traceback
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import TrackerConfig
from logging_config import configure_logging, get_logger
from orbit_tracker import __version__
from orbit_tracker.engine import TrackerEngine
from orbit_tracker.errors import LocationError

logger = get_logger(__name__)


class EngineRunner:
    """Runs a TrackerEngine on a dedicated event loop thread"""

    def __init__(self, engine: TrackerEngine, call_timeout: float = 10.0):
        self.engine = engine
        self.call_timeout = call_timeout
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="tracker-loop", daemon=True)

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self, start_engine: bool = True):
        self._thread.start()
        if start_engine:
            self.call(self.engine.start)

    def stop(self):
        self.call(self.engine.stop)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=self.call_timeout)

    def call(self, func, *args):
        """Run ``func(*args)`` on the engine loop and return its result."""
        async def invoke():
            result = func(*args)
            if asyncio.iscoroutine(result):
                result = await result
            return result

        future = asyncio.run_coroutine_threadsafe(invoke(), self.loop)
        return future.result(self.call_timeout)


def _json_body():
    return request.get_json(silent=True) or {}


def create_app(runner: EngineRunner) -> Flask:
    app = Flask(__name__)
    CORS(app)
    engine = runner.engine

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        status = runner.call(engine.snapshot)["status"]
        elements_loaded = status["elements_epoch"] is not None

        data_freshness = "unknown"
        if status["last_updated"]:
            age = datetime.now(timezone.utc) - datetime.fromisoformat(status["last_updated"])
            data_freshness = (
                "fresh" if age.total_seconds() < 3 * engine.config.poll_interval_s else "stale"
            )

        return jsonify({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "services": {
                "telemetry": "degraded" if status["feed_error"] else "ok",
                "elements_loaded": elements_loaded,
                "data_freshness": data_freshness,
            },
        }), 200

    @app.route('/state', methods=['GET'])
    def get_state():
        return jsonify(runner.call(engine.snapshot))

    @app.route('/view/gesture', methods=['POST'])
    def view_gesture():
        runner.call(engine.on_gesture)
        return jsonify(runner.call(engine.snapshot)["status"])

    @app.route('/view/reset', methods=['POST'])
    def view_reset():
        runner.call(engine.reset_view)
        return jsonify(runner.call(engine.snapshot)["view"])

    @app.route('/view/follow', methods=['POST'])
    def view_follow():
        runner.call(engine.toggle_follow)
        return jsonify(runner.call(engine.snapshot)["status"])

    @app.route('/observer', methods=['POST'])
    def set_observer():
        body = _json_body()
        observer = runner.call(engine.set_observer, body.get('latitude'), body.get('longitude'))
        return jsonify(observer.model_dump())

    @app.route('/viewport', methods=['POST'])
    def set_viewport():
        body = _json_body()
        try:
            west = float(body['west'])
            east = float(body['east'])
        except (KeyError, TypeError, ValueError):
            return jsonify({"error": "west and east longitudes are required"}), 400
        runner.call(engine.on_viewport_change, west, east)
        return jsonify(runner.call(engine.snapshot)["geometry"]["night"])

    @app.route('/footprint', methods=['POST'])
    def set_footprint():
        enabled = bool(_json_body().get('enabled', True))
        runner.call(engine.set_footprint_enabled, enabled)
        return jsonify(runner.call(engine.snapshot)["geometry"]["footprint"])

    @app.errorhandler(LocationError)
    def handle_location_error(error):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(Exception)
    def handle_error(error):
        """Global error handler"""
        if isinstance(error, HTTPException):
            return error
        logger.error("unhandled_error", error=str(error), traceback=traceback.format_exc())
        return jsonify({
            "error": "Internal server error",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }), 500

    return app


if __name__ == '__main__':
    configure_logging(logging.INFO, json=True)
    runner = EngineRunner(TrackerEngine(TrackerConfig.from_env()))
    runner.start()
    logger.info("Starting live tracker service")
    create_app(runner).run(host='0.0.0.0', port=5000, debug=False)
