from __future__ import annotations

import enum
from typing import Optional

from .models import PasteRecord


class PasteState(str, enum.Enum):
    """
    Availability of a paste at a given instant.

    Never stored: it is recomputed from ``(expires_at, max_views, view_count)``
    and the current time on every request. ``EXPIRED`` and ``VIEW_EXHAUSTED``
    are terminal.
    """

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    VIEW_EXHAUSTED = "VIEW_EXHAUSTED"


def compute_expires_at(now_ms: int, ttl_seconds: Optional[int]) -> Optional[int]:
    if ttl_seconds is None:
        return None
    return now_ms + ttl_seconds * 1000


def is_expired_at(record: PasteRecord, now_ms: int) -> bool:
    """A paste is expired from ``expires_at`` onwards (inclusive boundary)."""
    if record.expires_at is None:
        return False
    return now_ms >= record.expires_at


def has_exceeded_view_limit(record: PasteRecord) -> bool:
    if record.max_views is None:
        return False
    return record.view_count >= record.max_views


def state_at(record: PasteRecord, now_ms: int) -> PasteState:
    """
    Return the state of ``record`` at ``now_ms``.

    Expiry is checked first, so a paste that is both past its TTL and out of
    views reports ``EXPIRED``.
    """
    if is_expired_at(record, now_ms):
        return PasteState.EXPIRED
    if has_exceeded_view_limit(record):
        return PasteState.VIEW_EXHAUSTED
    return PasteState.ACTIVE


def remaining_views(record: PasteRecord) -> Optional[int]:
    if record.max_views is None:
        return None
    return max(0, record.max_views - record.view_count)
