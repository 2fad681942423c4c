from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from pastebin_lite.domain.models import Paste, PasteRecord
from pastebin_lite.errors import (
    IdentifierCollision,
    PasteValidationError,
    StoreTimeout,
    StoreUnavailable,
)
from pastebin_lite.repositories.paste_store import (
    IncrementOutcome,
    PasteStore,
    _translate_error,
)


def _record(paste_id: str = "abcdefghij", **kwargs) -> PasteRecord:
    defaults = {"content": "hello", "created_at": 1_000}
    defaults.update(kwargs)
    return PasteRecord(id=paste_id, **defaults)


# ---------------------------------------------------------------------------
# Create / fetch
# ---------------------------------------------------------------------------


def test_create_then_fetch_round_trips_record(store: PasteStore) -> None:
    record = _record(expires_at=61_000, max_views=2)
    store.create(record)

    assert store.fetch(record.id) == record


def test_fetch_unknown_id_returns_none(store: PasteStore) -> None:
    assert store.fetch("nope123456") is None


def test_create_duplicate_id_raises_collision_and_keeps_original(
    store: PasteStore,
    paste_count,
) -> None:
    store.create(_record(content="first"))

    with pytest.raises(IdentifierCollision) as excinfo:
        store.create(_record(content="second"))

    assert excinfo.value.paste_id == "abcdefghij"
    assert store.fetch("abcdefghij").content == "first"
    assert paste_count() == 1


def test_create_violating_constraints_is_not_a_collision(store: PasteStore) -> None:
    with pytest.raises(StoreUnavailable):
        store.create(_record(max_views=1, view_count=3))

    with pytest.raises(StoreUnavailable):
        store.create(_record(created_at=5_000, expires_at=5_000))


def test_paste_content_is_immutable(engine) -> None:
    with Session(engine) as session:
        paste = Paste(id="immutable1", content="immutable content", created_at=1_000)
        session.add(paste)
        session.flush()

        with pytest.raises(ValueError):
            paste.content = "new content"


# ---------------------------------------------------------------------------
# Conditional fetch-and-increment
# ---------------------------------------------------------------------------


def test_increment_unknown_id_reports_not_found(store: PasteStore) -> None:
    result = store.fetch_and_increment("nope123456", 1_000)
    assert result.outcome is IncrementOutcome.NOT_FOUND
    assert result.record is None


def test_increment_returns_post_increment_record(store: PasteStore) -> None:
    store.create(_record(max_views=3))

    first = store.fetch_and_increment("abcdefghij", 2_000)
    second = store.fetch_and_increment("abcdefghij", 3_000)

    assert first.outcome is IncrementOutcome.INCREMENTED
    assert first.record.view_count == 1
    assert second.record.view_count == 2
    assert store.fetch("abcdefghij").view_count == 2


def test_unlimited_paste_keeps_counting(store: PasteStore) -> None:
    store.create(_record())
    for expected in range(1, 6):
        result = store.fetch_and_increment("abcdefghij", 2_000)
        assert result.outcome is IncrementOutcome.INCREMENTED
        assert result.record.view_count == expected


def test_limit_exceeded_does_not_mutate(store: PasteStore) -> None:
    store.create(_record(max_views=1))
    assert store.fetch_and_increment("abcdefghij", 2_000).outcome is IncrementOutcome.INCREMENTED

    result = store.fetch_and_increment("abcdefghij", 3_000)

    assert result.outcome is IncrementOutcome.LIMIT_EXCEEDED
    assert result.record.view_count == 1
    assert store.fetch("abcdefghij").view_count == 1


def test_expired_paste_is_not_incremented(store: PasteStore) -> None:
    store.create(_record(expires_at=61_000, max_views=5))

    result = store.fetch_and_increment("abcdefghij", 61_000)

    assert result.outcome is IncrementOutcome.EXPIRED
    assert store.fetch("abcdefghij").view_count == 0


def test_expired_and_exhausted_reports_expired(store: PasteStore) -> None:
    store.create(_record(expires_at=61_000, max_views=1))
    store.fetch_and_increment("abcdefghij", 2_000)

    result = store.fetch_and_increment("abcdefghij", 70_000)

    assert result.outcome is IncrementOutcome.EXPIRED


def test_concurrent_increments_never_overshoot_quota(store: PasteStore) -> None:
    store.create(_record(max_views=3))
    workers = 12
    barrier = threading.Barrier(workers)

    def consume(_: int) -> IncrementOutcome:
        barrier.wait()
        return store.fetch_and_increment("abcdefghij", 2_000).outcome

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(consume, range(workers)))

    assert outcomes.count(IncrementOutcome.INCREMENTED) == 3
    assert outcomes.count(IncrementOutcome.LIMIT_EXCEEDED) == workers - 3
    assert store.fetch("abcdefghij").view_count == 3


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


def test_ping_succeeds_on_healthy_store(store: PasteStore) -> None:
    store.ping()


def test_purge_expired_removes_only_expired_rows(store: PasteStore) -> None:
    store.create(_record("expired001", expires_at=50_000))
    store.create(_record("boundary01", expires_at=100_000))
    store.create(_record("future0001", expires_at=200_000))
    store.create(_record("forever001"))

    removed = store.purge_expired(100_000)

    assert removed == 2
    assert store.fetch("expired001") is None
    assert store.fetch("boundary01") is None
    assert store.fetch("future0001") is not None
    assert store.fetch("forever001") is not None
    assert store.purge_expired(100_000) == 0


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def test_unreachable_database_surfaces_as_store_unavailable(broken_store: PasteStore) -> None:
    with pytest.raises(StoreUnavailable):
        broken_store.ping()
    with pytest.raises(StoreUnavailable):
        broken_store.fetch("abcdefghij")
    with pytest.raises(StoreUnavailable):
        broken_store.fetch_and_increment("abcdefghij", 1_000)


def test_timeouts_are_translated_to_store_timeout() -> None:
    cancelled = sa_exc.OperationalError(
        "UPDATE pastes",
        {},
        Exception("canceling statement due to statement timeout"),
    )
    locked = sa_exc.OperationalError("UPDATE pastes", {}, Exception("database is locked"))
    pool_timeout = sa_exc.TimeoutError("QueuePool limit reached")
    refused = sa_exc.OperationalError("SELECT 1", {}, Exception("connection refused"))

    assert isinstance(_translate_error(cancelled, "fetch"), StoreTimeout)
    assert isinstance(_translate_error(locked, "fetch"), StoreTimeout)
    assert isinstance(_translate_error(pool_timeout, "fetch"), StoreTimeout)
    assert isinstance(_translate_error(refused, "fetch"), StoreUnavailable)


def test_out_of_range_values_are_not_reported_as_unavailable(store: PasteStore) -> None:
    out_of_range = sa_exc.DataError(
        "INSERT INTO pastes",
        {},
        Exception("integer out of range"),
    )

    assert isinstance(_translate_error(out_of_range, "create"), PasteValidationError)
    with pytest.raises(PasteValidationError):
        with store._session("create"):
            raise out_of_range
