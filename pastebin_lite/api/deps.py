"""
Request-scoped accessors for the objects the app factory wires up.
"""

from __future__ import annotations

from flask import current_app, request

from pastebin_lite.clock import Clock
from pastebin_lite.repositories.paste_store import PasteStore
from pastebin_lite.services.paste_service import PasteService


TEST_NOW_HEADER = "x-test-now-ms"


def get_store() -> PasteStore:
    return current_app.extensions["paste_store"]


def get_clock() -> Clock:
    return current_app.extensions["clock"]


def get_paste_service() -> PasteService:
    return current_app.extensions["paste_service"]


def request_now() -> int:
    """Sample the clock once for the current request."""
    return get_clock().now(request.headers.get(TEST_NOW_HEADER))


def public_base_url() -> str:
    """Base URL for share links: ``BASE_URL`` config, else the request host."""
    base_url = current_app.config.get("BASE_URL")
    if not base_url:
        return request.host_url.rstrip("/")
    if not base_url.startswith("http"):
        base_url = f"{request.scheme}://{base_url}"
    return base_url.rstrip("/")
