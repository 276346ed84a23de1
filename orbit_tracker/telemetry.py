"""
Live Telemetry Polling

Requests the tracked object's current position from the live feed at a fixed
interval, independent of how the previous request ended. The timer is the
retry mechanism: there is no backoff.

Every request carries a sequence number. A response is applied only if the
poller is still open and no newer request has already resolved, since
responses may arrive out of submission order. Requests cancelled on shutdown
are not reported as errors.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

import requests
from pydantic import ValidationError

from logging_config import get_logger
from orbit_tracker.errors import FeedError
from orbit_tracker.models import LiveFix

logger = get_logger(__name__)


def fetch_json(url: str, timeout: float) -> Dict[str, Any]:
    """GET a JSON record, raising FeedError on transport failure or bad status."""
    try:
        response = requests.get(url, timeout=timeout, headers={"Cache-Control": "no-store"})
    except requests.RequestException as e:
        raise FeedError(f"Telemetry request failed: {e}") from e

    if not response.ok:
        raise FeedError(f"Request failed with {response.status_code}")

    try:
        return response.json()
    except ValueError as e:
        raise FeedError(f"Telemetry payload is not JSON: {e}") from e


def parse_live_fix(payload: Dict[str, Any]) -> LiveFix:
    try:
        return LiveFix.model_validate(payload)
    except ValidationError as e:
        raise FeedError(f"Malformed telemetry record: {e.error_count()} invalid field(s)") from e


class TelemetryPoller:
    """
    Fixed-interval live position poller.

    Args:
        url: Live telemetry feed URL
        interval: Seconds between request starts
        timeout: Per-request timeout in seconds
        fetch: Callable (url, timeout) -> record dict; defaults to an HTTP GET
        on_fix: Called with each applied LiveFix
    """

    def __init__(
        self,
        url: str,
        interval: float = 5.0,
        timeout: float = 10.0,
        fetch: Optional[Callable[[str, float], Dict[str, Any]]] = None,
        on_fix: Optional[Callable[[LiveFix], None]] = None,
    ):
        self.url = url
        self.interval = interval
        self.timeout = timeout
        self.fetch = fetch or fetch_json
        self.on_fix = on_fix

        self.latest_fix: Optional[LiveFix] = None
        self.last_error: Optional[FeedError] = None
        self.last_updated: Optional[datetime] = None
        self.loading = True

        self._sequence = 0
        self._resolved_sequence = 0
        self._pending: Set[asyncio.Task] = set()
        self._timer: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        if self.running:
            return
        self._closed = False
        self._timer = asyncio.get_running_loop().create_task(self._run())
        logger.info("telemetry_polling_started", url=self.url, interval_s=self.interval)

    async def stop(self) -> None:
        """Clear the timer and cancel every in-flight request."""
        self._closed = True
        tasks = list(self._pending)
        if self._timer is not None:
            tasks.append(self._timer)
            self._timer = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("telemetry_polling_stopped", cancelled=len(tasks))

    async def _run(self) -> None:
        while True:
            task = asyncio.create_task(self.poll_once())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            await asyncio.sleep(self.interval)

    async def poll_once(self) -> Optional[LiveFix]:
        """
        Run one request cycle.

        Returns:
            The applied LiveFix, or None on failure or when the response
            was superseded
        """
        self._sequence += 1
        sequence = self._sequence

        loop = asyncio.get_running_loop()
        try:
            payload = await loop.run_in_executor(None, self.fetch, self.url, self.timeout)
            fix = parse_live_fix(payload)
        except asyncio.CancelledError:
            logger.debug("telemetry_request_cancelled", cycle=sequence)
            raise
        except FeedError as e:
            if self._is_superseded(sequence):
                return None
            self._resolve(sequence)
            self.last_error = e
            logger.warning("telemetry_request_failed", cycle=sequence, error=str(e))
            return None

        if self._is_superseded(sequence):
            logger.debug("telemetry_response_stale", cycle=sequence)
            return None

        self._resolve(sequence)
        self.last_error = None
        self.latest_fix = fix
        self.last_updated = datetime.now(timezone.utc)
        if self.on_fix is not None:
            self.on_fix(fix)
        return fix

    def _resolve(self, sequence: int) -> None:
        self._resolved_sequence = sequence
        self.loading = False

    def _is_superseded(self, sequence: int) -> bool:
        return self._closed or sequence < self._resolved_sequence
