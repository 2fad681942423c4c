from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

from pastebin_lite.clock import MAX_EPOCH_MS
from pastebin_lite.domain.identifiers import IdentifierGenerator
from pastebin_lite.domain.lifecycle import (
    PasteState,
    compute_expires_at,
    remaining_views,
    state_at,
)
from pastebin_lite.domain.models import MAX_VIEWS_LIMIT, PasteRecord
from pastebin_lite.errors import (
    IdentifierCollision,
    PasteValidationError,
    ResourceExhausted,
)
from pastebin_lite.observability import get_correlation_id
from pastebin_lite.repositories.paste_store import IncrementOutcome, PasteStore


logger = logging.getLogger(__name__)


DEFAULT_MAX_ID_ATTEMPTS = 5


class ReadStatus(str, enum.Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"


_STATE_STATUS = {
    PasteState.EXPIRED: ReadStatus.EXPIRED,
    PasteState.VIEW_EXHAUSTED: ReadStatus.LIMIT_EXCEEDED,
}

_OUTCOME_STATUS = {
    IncrementOutcome.NOT_FOUND: ReadStatus.NOT_FOUND,
    IncrementOutcome.EXPIRED: ReadStatus.EXPIRED,
    IncrementOutcome.LIMIT_EXCEEDED: ReadStatus.LIMIT_EXCEEDED,
}


@dataclass(frozen=True)
class PasteView:
    """A successfully read paste, after its view has been counted."""

    id: str
    content: str
    created_at: int
    expires_at: Optional[int]
    max_views: Optional[int]
    view_count: int
    remaining_views: Optional[int]

    @classmethod
    def from_record(cls, record: PasteRecord) -> "PasteView":
        return cls(
            id=record.id,
            content=record.content,
            created_at=record.created_at,
            expires_at=record.expires_at,
            max_views=record.max_views,
            view_count=record.view_count,
            remaining_views=remaining_views(record),
        )


@dataclass(frozen=True)
class ReadResult:
    status: ReadStatus
    paste: Optional[PasteView] = None

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.OK


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def build_share_url(base_url: str, paste_id: str) -> str:
    return f"{base_url.rstrip('/')}/p/{paste_id}"


@dataclass
class PasteService:
    """
    Application service coordinating the paste lifecycle.

    Holds no per-request state; the store is the only shared mutable
    resource. Callers sample the clock once per request and pass ``now`` in
    epoch milliseconds to every operation.
    """

    store: PasteStore
    id_generator: Callable[[], str] = field(default_factory=IdentifierGenerator)
    max_id_attempts: int = DEFAULT_MAX_ID_ATTEMPTS
    max_content_bytes: Optional[int] = None

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def validate_create(
        self,
        *,
        content: Any,
        ttl_seconds: Any = None,
        max_views: Any = None,
        now: int,
    ) -> None:
        """
        Enforce creation rules; raises ``PasteValidationError``.

        - ``content`` must be a string with at least one non-whitespace character
        - ``content`` must fit in ``max_content_bytes`` when UTF-8 encoded
        - ``ttl_seconds`` and ``max_views``, when given, must be positive integers
        - ``now + ttl_seconds`` must not pass ``MAX_EPOCH_MS``, so the expiry
          stays representable when the paste is read back
        - ``max_views`` must fit the ``max_views`` column
        """
        if not isinstance(content, str) or not content.strip():
            self._reject("content")
            raise PasteValidationError(
                "Content is required and must be a non-empty string"
            )

        if (
            self.max_content_bytes is not None
            and len(content.encode("utf-8")) > self.max_content_bytes
        ):
            self._reject("content")
            raise PasteValidationError(
                f"content must be at most {self.max_content_bytes} bytes when UTF-8 encoded"
            )

        if ttl_seconds is not None and not _is_positive_int(ttl_seconds):
            self._reject("ttl_seconds")
            raise PasteValidationError("ttl_seconds must be a positive integer")

        if ttl_seconds is not None and compute_expires_at(now, ttl_seconds) > MAX_EPOCH_MS:
            self._reject("ttl_seconds")
            raise PasteValidationError("ttl_seconds is too large")

        if max_views is not None and not _is_positive_int(max_views):
            self._reject("max_views")
            raise PasteValidationError("max_views must be a positive integer")

        if max_views is not None and max_views > MAX_VIEWS_LIMIT:
            self._reject("max_views")
            raise PasteValidationError(f"max_views must be at most {MAX_VIEWS_LIMIT}")

    def create_paste(
        self,
        *,
        content: Any,
        ttl_seconds: Any = None,
        max_views: Any = None,
        now: int,
        base_url: str,
    ) -> dict[str, Any]:
        """
        Create a paste and return ``{"id": ..., "url": ...}``.

        Validation runs before any store call. A fresh id is generated for
        every attempt; after ``max_id_attempts`` collisions ``ResourceExhausted``
        is raised, since repeated collisions point at a broken store rather
        than bad luck.
        """
        self.validate_create(
            content=content,
            ttl_seconds=ttl_seconds,
            max_views=max_views,
            now=now,
        )
        expires_at = compute_expires_at(now, ttl_seconds)

        for attempt in range(1, self.max_id_attempts + 1):
            record = PasteRecord(
                id=self.id_generator(),
                content=content,
                created_at=now,
                expires_at=expires_at,
                max_views=max_views,
                view_count=0,
            )
            try:
                self.store.create(record)
            except IdentifierCollision:
                logger.warning(
                    "Paste id collision, regenerating",
                    extra={
                        "event": "paste_id_collision",
                        "paste_id": record.id,
                        "attempt": attempt,
                        "correlation_id": get_correlation_id(),
                    },
                )
                continue

            logger.info(
                "Paste created",
                extra={
                    "event": "paste_created",
                    "paste_id": record.id,
                    "correlation_id": get_correlation_id(),
                },
            )
            return {"id": record.id, "url": build_share_url(base_url, record.id)}

        logger.error(
            "Could not allocate a paste id",
            extra={
                "event": "paste_id_exhausted",
                "attempt": self.max_id_attempts,
                "correlation_id": get_correlation_id(),
            },
        )
        raise ResourceExhausted(
            f"Could not allocate a unique paste id after {self.max_id_attempts} attempts."
        )

    # -------------------------------------------------------------------------
    # Retrieval / viewing
    # -------------------------------------------------------------------------
    def read_paste(self, paste_id: str, *, now: int) -> ReadResult:
        """
        Read a paste, counting the view.

        Rules:
        - Unknown id → NOT_FOUND
        - ``now >= expires_at`` → EXPIRED, and no view is consumed
        - ``view_count >= max_views`` → LIMIT_EXCEEDED, rechecked at increment time
        - Otherwise one view is consumed atomically and the content returned
        """
        record = self.store.fetch(paste_id)
        if record is None:
            return self._rejected(paste_id, ReadStatus.NOT_FOUND)

        state = state_at(record, now)
        if state is not PasteState.ACTIVE:
            return self._rejected(paste_id, _STATE_STATUS[state])

        result = self.store.fetch_and_increment(paste_id, now)
        if result.outcome is not IncrementOutcome.INCREMENTED or result.record is None:
            status = _OUTCOME_STATUS.get(result.outcome, ReadStatus.NOT_FOUND)
            return self._rejected(paste_id, status)

        logger.info(
            "Paste read",
            extra={
                "event": "paste_read",
                "paste_id": paste_id,
                "outcome": ReadStatus.OK.value,
                "correlation_id": get_correlation_id(),
            },
        )
        return ReadResult(ReadStatus.OK, PasteView.from_record(result.record))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------
    def _rejected(self, paste_id: str, status: ReadStatus) -> ReadResult:
        logger.info(
            "Paste unavailable",
            extra={
                "event": "paste_read_rejected",
                "paste_id": paste_id,
                "outcome": status.value,
                "correlation_id": get_correlation_id(),
            },
        )
        return ReadResult(status)

    @staticmethod
    def _reject(field: str) -> None:
        logger.warning(
            f"Invalid {field} when creating paste",
            extra={
                "event": "paste_create_invalid_parameters",
                "correlation_id": get_correlation_id(),
            },
        )
