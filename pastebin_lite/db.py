from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool


Base = declarative_base()


def _install_sqlite_locking(engine: Engine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite's implicit deferred BEGIN lets two writers race for the lock and
    fail with "database is locked"; BEGIN IMMEDIATE makes them queue on the
    busy timeout instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _record) -> None:  # type: ignore[unused-variable]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn) -> None:  # type: ignore[unused-variable]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_store_engine(
    database_uri: str,
    *,
    timeout_seconds: float,
    echo: bool = False,
) -> Engine:
    """
    Create the SQLAlchemy engine backing the paste store.

    ``timeout_seconds`` bounds connection checkout and, for SQLite, the busy
    wait on a locked database. In-memory SQLite URLs share a single
    connection so that every session sees the same database.
    """
    if not database_uri:
        raise RuntimeError("SQLALCHEMY_DATABASE_URI is not configured.")

    url = make_url(database_uri)
    kwargs: dict[str, Any] = {"echo": echo}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": timeout_seconds,
        }
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        _install_sqlite_locking(engine)
        return engine

    kwargs["pool_pre_ping"] = True
    kwargs["pool_timeout"] = timeout_seconds
    if url.get_backend_name() == "postgresql":
        kwargs["connect_args"] = {"connect_timeout": max(1, int(timeout_seconds))}
    return create_engine(url, **kwargs)


def create_schema(engine: Engine) -> None:
    """Create all tables known to ``Base.metadata`` (used when migrations are not run)."""
    # Import models so that Base.metadata is populated.
    from pastebin_lite.domain import models as _models  # noqa: F401

    Base.metadata.create_all(engine)
