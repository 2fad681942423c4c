from __future__ import annotations

import enum
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Select, Update, delete, or_, select, text, update
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pastebin_lite.domain.lifecycle import is_expired_at
from pastebin_lite.domain.models import Paste, PasteRecord
from pastebin_lite.errors import (
    IdentifierCollision,
    PasteError,
    PasteValidationError,
    StoreTimeout,
    StoreUnavailable,
)
from pastebin_lite.observability import get_correlation_id


logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = (
    "timeout",
    "timed out",
    "statement timeout",
    "canceling statement",
    "database is locked",
)


class IncrementOutcome(str, enum.Enum):
    INCREMENTED = "INCREMENTED"
    NOT_FOUND = "NOT_FOUND"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class IncrementResult:
    outcome: IncrementOutcome
    record: Optional[PasteRecord] = None


def _translate_error(exc: sa_exc.SQLAlchemyError, operation: str) -> PasteError:
    """
    Map a SQLAlchemy/driver failure onto the paste error classes.

    Values the database refuses to hold (``DataError``) are the caller's
    fault and become ``PasteValidationError``; everything else is transient.
    """
    if isinstance(exc, sa_exc.DataError):
        return PasteValidationError(
            f"Paste store rejected the values for {operation}: {exc.orig}"
        )
    if isinstance(exc, sa_exc.TimeoutError):
        return StoreTimeout(f"Paste store {operation} timed out: {exc}")
    if isinstance(exc, sa_exc.OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        if any(marker in message for marker in _TIMEOUT_MARKERS):
            return StoreTimeout(f"Paste store {operation} timed out: {exc.orig}")
    return StoreUnavailable(f"Paste store {operation} failed: {exc}")


class PasteStore:
    """
    Durable paste storage.

    All database interaction for pastes goes through this class. Each public
    method runs in its own short transaction, bounded by ``timeout_seconds``,
    and returns ``PasteRecord`` snapshots; no ORM entities escape this layer.
    Database failures surface as ``StoreTimeout`` or ``StoreUnavailable``;
    values the database cannot hold surface as ``PasteValidationError``.
    """

    def __init__(self, engine: Engine, *, timeout_seconds: float = 5.0) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self.timeout_seconds = timeout_seconds

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            self._apply_statement_timeout(session)
            yield session
            session.commit()
        except PasteError:
            session.rollback()
            raise
        except sa_exc.SQLAlchemyError as exc:
            session.rollback()
            error = _translate_error(exc, operation)
            logger.warning(
                "Paste store operation failed",
                extra={
                    "event": "store_error",
                    "error_type": type(error).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise error from exc
        finally:
            session.close()

    def _apply_statement_timeout(self, session: Session) -> None:
        if self._engine.dialect.name != "postgresql":
            return
        timeout_ms = max(1, int(self.timeout_seconds * 1000))
        # SET does not accept bind parameters.
        session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------
    def create(self, record: PasteRecord) -> PasteRecord:
        """
        Persist a new paste.

        Raises ``IdentifierCollision`` if a paste with ``record.id`` already
        exists so that the caller can pick another id.
        """
        with self._session("create") as session:
            session.add(record.to_entity())
            try:
                session.flush()
            except sa_exc.IntegrityError as exc:
                session.rollback()
                if session.get(Paste, record.id) is not None:
                    raise IdentifierCollision(record.id) from exc
                raise StoreUnavailable(
                    f"Paste store rejected paste {record.id}: {exc.orig}"
                ) from exc
        return record

    def fetch(self, paste_id: str) -> Optional[PasteRecord]:
        """Return a paste by its id, or ``None`` if not found. Never mutates."""
        with self._session("fetch") as session:
            stmt: Select[tuple[Paste]] = select(Paste).where(Paste.id == paste_id)
            paste = session.execute(stmt).scalar_one_or_none()
            return None if paste is None else PasteRecord.from_entity(paste)

    def fetch_and_increment(self, paste_id: str, now_ms: int) -> IncrementResult:
        """
        Atomically consume one view of a paste.

        A single conditional UPDATE increments ``view_count`` only while the
        quota is not reached and the paste has not expired at ``now_ms``, so
        concurrent readers can never push ``view_count`` past ``max_views``.
        When no row is updated the paste is re-read inside the same
        transaction to report why, without mutating it.
        """
        with self._session("fetch_and_increment") as session:
            stmt: Update = (
                update(Paste)
                .where(
                    Paste.id == paste_id,
                    or_(Paste.max_views.is_(None), Paste.view_count < Paste.max_views),
                    or_(Paste.expires_at.is_(None), Paste.expires_at > now_ms),
                )
                .values(view_count=Paste.view_count + 1)
                .execution_options(synchronize_session=False)
            )
            updated = session.execute(stmt).rowcount

            paste = session.execute(
                select(Paste).where(Paste.id == paste_id)
            ).scalar_one_or_none()
            if paste is None:
                return IncrementResult(IncrementOutcome.NOT_FOUND)

            record = PasteRecord.from_entity(paste)
            if updated == 1:
                return IncrementResult(IncrementOutcome.INCREMENTED, record)
            if is_expired_at(record, now_ms):
                return IncrementResult(IncrementOutcome.EXPIRED, record)
            return IncrementResult(IncrementOutcome.LIMIT_EXCEEDED, record)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------
    def ping(self) -> None:
        """Round-trip to the database; raises a ``StoreError`` when unreachable."""
        with self._session("ping") as session:
            session.execute(text("SELECT 1"))

    def purge_expired(self, now_ms: int, *, limit: int = 500) -> int:
        """Physically delete up to ``limit`` pastes whose ``expires_at <= now_ms``."""
        with self._session("purge_expired") as session:
            ids = (
                session.execute(
                    select(Paste.id)
                    .where(Paste.expires_at.isnot(None), Paste.expires_at <= now_ms)
                    .order_by(Paste.expires_at)
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            if not ids:
                return 0
            session.execute(
                delete(Paste)
                .where(Paste.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            return len(ids)

    def close(self) -> None:
        self._engine.dispose()
