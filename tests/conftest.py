from __future__ import annotations

from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from pastebin_lite import create_app
from pastebin_lite.db import create_schema, create_store_engine
from pastebin_lite.domain.models import Paste
from pastebin_lite.repositories.paste_store import PasteStore
from pastebin_lite.services.paste_service import PasteService


BASE_URL = "https://paste.example"
BROKEN_DATABASE_URI = "sqlite+pysqlite:////nonexistent-dir/pastebin/pastes.db"


# ---------------------------------------------------------------------------
# Store / service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def database_uri(tmp_path) -> str:
    """
    File-backed SQLite database per test.

    A file (rather than ``:memory:``) lets concurrent threads use separate
    connections against the same data.
    """

    return f"sqlite+pysqlite:///{tmp_path / 'pastes.db'}"


@pytest.fixture(scope="function")
def engine(database_uri: str) -> Generator[Engine, None, None]:
    engine = create_store_engine(database_uri, timeout_seconds=10)
    create_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def store(engine: Engine) -> PasteStore:
    return PasteStore(engine, timeout_seconds=10)


@pytest.fixture
def paste_service(store: PasteStore) -> PasteService:
    return PasteService(store=store)


@pytest.fixture
def broken_store() -> Generator[PasteStore, None, None]:
    """A store whose database file can never be opened."""

    store = PasteStore(
        create_store_engine(BROKEN_DATABASE_URI, timeout_seconds=1),
        timeout_seconds=1,
    )
    try:
        yield store
    finally:
        store.close()


def count_pastes(engine: Engine) -> int:
    with Session(engine) as session:
        return session.execute(select(func.count()).select_from(Paste)).scalar_one()


# ---------------------------------------------------------------------------
# Flask fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app(database_uri: str) -> Generator[Flask, None, None]:
    app = create_app(
        "testing",
        overrides={
            "SQLALCHEMY_DATABASE_URI": database_uri,
            "BASE_URL": BASE_URL,
        },
    )
    try:
        yield app
    finally:
        app.extensions["paste_store"].close()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def paste_count(engine: Engine):
    """Callable returning the number of stored pastes."""

    return lambda: count_pastes(engine)
