"""
Orbital Element Source

Fetches the tracked object's two-line element set from an element feed and
extracts exactly two element lines from the returned text.

The text may carry a title line (three-line format) or surrounding noise; the
first line starting with the line-1 marker anchors the set and the line that
immediately follows must be its line 2. Anything else is a FormatError.

On refresh failure the last good elements are kept so that predictions
running on them are not disrupted.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import requests

from logging_config import get_logger
from orbit_tracker.errors import FeedError, FormatError, TrackerError
from orbit_tracker.models import OrbitalElements

logger = get_logger(__name__)

LINE1_MARKER = "1 "
LINE2_MARKER = "2 "
TLE_LINE_LENGTH = 69


def tle_checksum(line: str) -> int:
    """Calculate TLE checksum (digits count face value, '-' counts 1)."""
    checksum = 0
    for char in line[:68]:
        if char.isdigit():
            checksum += int(char)
        elif char == "-":
            checksum += 1
    return checksum % 10


def _is_element_line(line: str, marker: str) -> bool:
    return line.startswith(marker) and len(line) >= TLE_LINE_LENGTH


def extract_element_lines(text: str) -> Tuple[Optional[str], str, str]:
    """
    Locate the two element lines in raw feed text.

    Args:
        text: Raw multi-line feed payload

    Returns:
        Tuple of (name, line1, line2); name is the title line preceding
        line 1 when there is one

    Raises:
        FormatError: No valid line 1, or line 1 not followed by a valid line 2
    """
    lines = [line.rstrip() for line in text.splitlines()]

    for i, line in enumerate(lines):
        if not _is_element_line(line.lstrip(), LINE1_MARKER):
            continue

        line1 = line.lstrip()
        if i + 1 >= len(lines) or not _is_element_line(lines[i + 1].lstrip(), LINE2_MARKER):
            raise FormatError("Element line 1 is not followed by a valid line 2")
        line2 = lines[i + 1].lstrip()

        name = None
        if i > 0 and lines[i - 1].strip():
            name = lines[i - 1].strip()
            if name.startswith("0 "):
                name = name[2:].strip()

        return name, line1, line2

    raise FormatError("No orbital element lines found in feed text")


def _epoch_to_datetime(epoch_field: str) -> datetime:
    """Convert a TLE epoch field (YYDDD.DDDDDDDD) to datetime."""
    epoch_year = int(epoch_field[:2])
    epoch_days = float(epoch_field[2:])

    year = 1900 + epoch_year if epoch_year >= 57 else 2000 + epoch_year
    # -1 because day 1 is Jan 1
    return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=epoch_days - 1.0)


def parse_elements(text: str) -> OrbitalElements:
    """
    Extract and parse an element set from feed text.

    Raises:
        FormatError: Missing lines, mismatched catalogue numbers or an
            unreadable epoch
    """
    name, line1, line2 = extract_element_lines(text)

    try:
        norad_id = int(line1[2:7])
        norad_id_2 = int(line2[2:7])
        epoch = _epoch_to_datetime(line1[18:32].strip())
    except ValueError as e:
        raise FormatError(f"Unreadable element fields: {e}") from e

    if norad_id != norad_id_2:
        raise FormatError(
            f"Catalogue numbers differ between lines ({norad_id} != {norad_id_2})"
        )

    for number, line in ((1, line1), (2, line2)):
        if line[68].isdigit() and int(line[68]) != tle_checksum(line):
            logger.warning("tle_checksum_mismatch", line=number, norad_id=norad_id)

    return OrbitalElements(
        line1=line1, line2=line2, norad_id=norad_id, epoch=epoch, name=name
    )


def fetch_text(url: str, timeout: float) -> str:
    """GET a text payload, raising FeedError on transport failure or bad status."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FeedError(f"Element feed request failed: {e}") from e
    return response.text


class EphemerisSource:
    """
    Holds the current element set and refreshes it from the element feed.

    Elements are replaced wholesale on a successful refresh; on failure the
    last good set stays current and ``last_error`` is published.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        fetch: Optional[Callable[[str, float], str]] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.fetch = fetch or fetch_text
        self.elements: Optional[OrbitalElements] = None
        self.last_error: Optional[TrackerError] = None
        self.last_refreshed: Optional[datetime] = None
        self._generation = 0
        self._closed = False

    def seed(self, line1: str, line2: str, name: Optional[str] = None) -> OrbitalElements:
        """Install elements without fetching (fallback or fixed elements)."""
        text = "\n".join(part for part in (name, line1, line2) if part)
        self.elements = parse_elements(text)
        logger.info("elements_seeded", norad_id=self.elements.norad_id)
        return self.elements

    async def refresh(self) -> Optional[OrbitalElements]:
        """
        Fetch and install a new element set.

        Returns:
            The new elements, or None when the refresh failed or was
            superseded by a newer refresh or by close()
        """
        self._generation += 1
        generation = self._generation

        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, self.fetch, self.url, self.timeout)
            elements = parse_elements(text)
        except TrackerError as e:
            if self._is_superseded(generation):
                return None
            self.last_error = e
            logger.warning("elements_refresh_failed", error=str(e),
                           kind=type(e).__name__, kept_previous=self.elements is not None)
            return None

        if self._is_superseded(generation):
            logger.debug("elements_refresh_superseded", generation=generation)
            return None

        self.elements = elements
        self.last_error = None
        self.last_refreshed = datetime.now(timezone.utc)
        logger.info("elements_refreshed", norad_id=elements.norad_id,
                    epoch=elements.epoch.isoformat())
        return elements

    def open(self) -> None:
        """Accept refresh results again after close()."""
        self._closed = False

    def close(self) -> None:
        self._closed = True

    def _is_superseded(self, generation: int) -> bool:
        return self._closed or generation != self._generation
