from __future__ import annotations

import os
from typing import Any, Mapping

from flask import Flask
from flask_cors import CORS

from .api import register_blueprints, register_error_handlers
from .clock import Clock
from .config import get_config
from .db import create_schema, create_store_engine
from .domain.identifiers import IdentifierGenerator
from .observability import init_observability
from .repositories.paste_store import PasteStore
from .services.paste_service import PasteService
from .worker.expiry_reaper import start_expiry_reaper


def init_store(app: Flask) -> PasteStore:
    """
    Build the paste store, clock and service for ``app``.

    They are kept on ``app.extensions`` so that every request of this app
    shares one store handle with an explicit lifecycle.
    """
    engine = create_store_engine(
        app.config["SQLALCHEMY_DATABASE_URI"],
        timeout_seconds=float(app.config["STORE_TIMEOUT_SECONDS"]),
        echo=app.config.get("SQLALCHEMY_ECHO", False),
    )
    if app.config.get("AUTO_CREATE_SCHEMA", False):
        create_schema(engine)

    store = PasteStore(engine, timeout_seconds=float(app.config["STORE_TIMEOUT_SECONDS"]))
    max_content_bytes = app.config.get("MAX_CONTENT_BYTES")

    app.extensions["paste_store"] = store
    app.extensions["clock"] = Clock(test_mode=bool(app.config.get("TEST_MODE", False)))
    app.extensions["paste_service"] = PasteService(
        store=store,
        id_generator=IdentifierGenerator(),
        max_id_attempts=int(app.config["ID_MAX_ATTEMPTS"]),
        max_content_bytes=int(max_content_bytes) if max_content_bytes else None,
    )
    return store


def create_app(
    env_name: str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Flask:
    """
    Application factory for the pastebin service.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``). ``overrides`` are applied on top of the selected
    config class.
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(get_config(env_name))
    if overrides:
        app.config.update(overrides)

    CORS(app)

    # Initialize infrastructure layers
    init_observability(app)
    init_store(app)

    register_blueprints(app)
    register_error_handlers(app)

    if app.config.get("REAPER_ENABLED", False):
        start_expiry_reaper(app)

    return app
