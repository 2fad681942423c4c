from __future__ import annotations

import logging
import threading

from flask import Flask

from pastebin_lite.clock import Clock
from pastebin_lite.errors import StoreError
from pastebin_lite.repositories.paste_store import PasteStore


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0

_reaper_lock = threading.Lock()


def run_reaper_cycle(store: PasteStore, clock: Clock) -> int:
    """
    Delete pastes whose TTL has passed. Returns the number of rows removed.

    Reads never depend on this: expiry is always evaluated per request.
    """

    try:
        removed = store.purge_expired(clock.now())
    except StoreError:
        logger.warning(
            "Expiry reaper: paste store unavailable; skipping cycle",
            extra={
                "event": "expiry_reaper_store_error",
                "correlation_id": "expiry-reaper",
            },
        )
        return 0

    if removed:
        logger.info(
            "Expiry reaper: removed expired pastes",
            extra={
                "event": "expiry_reaper_purged",
                "removed": removed,
                "correlation_id": "expiry-reaper",
            },
        )
    return removed


def _reaper_loop(
    store: PasteStore,
    clock: Clock,
    interval_seconds: float,
    stop: threading.Event,
) -> None:
    """Background loop that periodically purges expired pastes until ``stop`` is set."""

    while not stop.is_set():
        try:
            run_reaper_cycle(store, clock)
        except Exception:  # pragma: no cover - keep the thread alive
            logger.exception(
                "Error in expiry reaper loop",
                extra={
                    "event": "expiry_reaper_error",
                    "correlation_id": "expiry-reaper",
                },
            )
        stop.wait(interval_seconds)


def start_expiry_reaper(app: Flask) -> threading.Event:
    """
    Start the expiry reaper in a background thread.

    Idempotent per app: a second call returns the running reaper's stop event.
    """

    with _reaper_lock:
        existing = app.extensions.get("expiry_reaper_stop")
        if existing is not None:
            return existing

        stop = threading.Event()
        thread = threading.Thread(
            target=_reaper_loop,
            args=(
                app.extensions["paste_store"],
                app.extensions["clock"],
                float(app.config.get("REAPER_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)),
                stop,
            ),
            name="expiry-reaper",
            daemon=True,
        )
        thread.start()
        app.extensions["expiry_reaper_stop"] = stop
        return stop
