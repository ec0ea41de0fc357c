"""Resolution of preset and explicit time windows."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Union

from dateutil import parser

from .core import TimeWindow
from .errors import InvalidWindowError

LOGGER = logging.getLogger(__name__)

PRESET_SECONDS: Dict[str, int] = {
    "1h": 3600,
    "6h": 6 * 3600,
    "24h": 24 * 3600,
    "2d": 2 * 24 * 3600,
    "7d": 7 * 24 * 3600,
}
DEFAULT_PRESET = "1h"
CUSTOM = "custom"

Bound = Union[str, int, float, datetime, None]


def now_millis() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp() * 1000)


def preset_seconds(preset: Optional[str]) -> int:
    """Return the preset duration, falling back to one hour for unknown names."""
    seconds = PRESET_SECONDS.get((preset or "").strip().lower())
    if seconds is None:
        LOGGER.debug("Unknown range preset %r, using %s", preset, DEFAULT_PRESET)
        return PRESET_SECONDS[DEFAULT_PRESET]
    return seconds


def infer_preset(preset: Optional[str], start: Bound = None, end: Bound = None) -> Optional[str]:
    """Explicit bounds sent without a preset select a custom range."""
    if preset:
        return preset
    if any(bound is not None and bound != "" for bound in (start, end)):
        return CUSTOM
    return None


def to_millis(value: Bound) -> int:
    """Convert an explicit bound into epoch milliseconds.

    Naive ISO strings and naive datetimes are interpreted in local time,
    matching how the operator typed them.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidWindowError("Start and end must both be provided for a custom range")
    if isinstance(value, bool):
        raise InvalidWindowError(f"Invalid time bound: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        return int(value.astimezone().timestamp() * 1000)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
        try:
            parsed = parser.isoparse(text)
        except (ValueError, OverflowError) as exc:
            raise InvalidWindowError(f"Unparseable time bound: {value!r}") from exc
        return int(parsed.astimezone().timestamp() * 1000)
    raise InvalidWindowError(f"Unsupported time bound type: {type(value).__name__}")


class TimeWindowResolver:
    """Turn a preset name or explicit bounds into a concrete ``TimeWindow``."""

    def __init__(self, clock: Callable[[], int] = now_millis) -> None:
        self._clock = clock

    def resolve_preset(self, preset: Optional[str], now: Optional[int] = None) -> TimeWindow:
        end = self._clock() if now is None else int(now)
        return TimeWindow(start=end - preset_seconds(preset) * 1000, end=end)

    def resolve_explicit(self, start: Bound, end: Bound) -> TimeWindow:
        start_ms = to_millis(start)
        end_ms = to_millis(end)
        if start_ms > end_ms:
            raise InvalidWindowError("Start of the time range is after its end")
        return TimeWindow(start=start_ms, end=end_ms)

    def resolve(
        self,
        preset: Optional[str] = DEFAULT_PRESET,
        *,
        start: Bound = None,
        end: Bound = None,
        now: Optional[int] = None,
    ) -> TimeWindow:
        """Resolve ``preset`` relative to now, or explicit bounds when ``preset`` is ``custom``.

        Presets are evaluated on every call so refreshed runs move forward in time.
        """
        if preset is None or preset.strip().lower() == CUSTOM:
            return self.resolve_explicit(start, end)
        return self.resolve_preset(preset, now=now)
