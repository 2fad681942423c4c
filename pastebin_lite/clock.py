"""
Clock provider.

All time-dependent logic reads "now" through ``Clock.now`` as integer
milliseconds since the epoch. When test mode is enabled an explicit override
(for example the ``x-test-now-ms`` request header) is returned verbatim.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Optional, Union


Override = Union[int, str, None]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Largest instant a ``datetime`` can represent, in epoch milliseconds.
MAX_EPOCH_MS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // timedelta(milliseconds=1)


def _parse_override(value: Override) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    else:
        text = value.strip()
        if not (text.isascii() and text.isdecimal()):
            return None
        parsed = int(text)
    return parsed if 0 < parsed <= MAX_EPOCH_MS else None


class Clock:
    """Source of the current time in epoch milliseconds."""

    def __init__(
        self,
        *,
        test_mode: bool = False,
        wall: Callable[[], float] = time.time,
    ) -> None:
        self.test_mode = test_mode
        self._wall = wall

    def now(self, override: Override = None) -> int:
        """
        Return the current time in milliseconds.

        ``override`` is only honoured in test mode and only when it is a
        positive integer (or a string of ASCII digits) no later than
        ``MAX_EPOCH_MS``; anything else falls back to wall-clock time.
        """
        if self.test_mode:
            forced = _parse_override(override)
            if forced is not None:
                return forced
        return int(self._wall() * 1000)


def ms_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return _EPOCH + timedelta(milliseconds=value)


def ms_to_iso(value: Optional[int]) -> Optional[str]:
    """Format epoch milliseconds as an ISO-8601 UTC string with millisecond precision."""
    dt = ms_to_datetime(value)
    if dt is None:
        return None
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
