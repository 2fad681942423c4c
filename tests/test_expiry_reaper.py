from __future__ import annotations

from pastebin_lite import create_app
from pastebin_lite.clock import Clock
from pastebin_lite.domain.models import PasteRecord
from pastebin_lite.repositories.paste_store import PasteStore
from pastebin_lite.worker.expiry_reaper import run_reaper_cycle, start_expiry_reaper


def _clock_at(ms: int) -> Clock:
    return Clock(wall=lambda: ms / 1000)


def test_reaper_cycle_purges_only_expired_pastes(store: PasteStore) -> None:
    store.create(PasteRecord(id="expired001", content="a", created_at=1, expires_at=50_000))
    store.create(PasteRecord(id="future0001", content="b", created_at=1, expires_at=200_000))
    store.create(PasteRecord(id="forever001", content="c", created_at=1))

    assert run_reaper_cycle(store, _clock_at(100_000)) == 1

    assert store.fetch("expired001") is None
    assert store.fetch("future0001") is not None
    assert store.fetch("forever001") is not None


def test_reaper_cycle_survives_store_failure(broken_store: PasteStore) -> None:
    assert run_reaper_cycle(broken_store, _clock_at(100_000)) == 0


def test_start_expiry_reaper_is_idempotent(database_uri: str) -> None:
    app = create_app(
        "testing",
        overrides={
            "SQLALCHEMY_DATABASE_URI": database_uri,
            "REAPER_ENABLED": True,
            "REAPER_INTERVAL_SECONDS": 3600,
        },
    )
    try:
        stop = app.extensions["expiry_reaper_stop"]
        assert start_expiry_reaper(app) is stop
    finally:
        app.extensions["expiry_reaper_stop"].set()
        app.extensions["paste_store"].close()


def test_reaper_not_started_by_default(app) -> None:
    assert "expiry_reaper_stop" not in app.extensions
