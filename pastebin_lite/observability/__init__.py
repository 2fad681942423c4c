from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, Response, g, request


CORRELATION_HEADER = "X-Correlation-ID"

# Structured attributes copied from a LogRecord into the JSON payload.
LOG_FIELDS = (
    "event",
    "correlation_id",
    "http_method",
    "http_path",
    "http_status",
    "duration_ms",
    "paste_id",
    "outcome",
    "attempt",
    "removed",
    "error_type",
)

request_logger = logging.getLogger("pastebin_lite.requests")


class _RequestContextFilter(logging.Filter):
    """Stamp records emitted during a request with its method, path and correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            if getattr(record, "correlation_id", None) is None:
                record.correlation_id = getattr(g, "correlation_id", None)
            record.http_method = request.method
            record.http_path = request.path
        except RuntimeError:
            # Outside a request: reaper thread, app startup.
            pass
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``None`` fields are left out."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in LOG_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def get_correlation_id() -> str | None:
    """
    Return the current request's correlation_id, if any.
    """

    try:
        return getattr(g, "correlation_id", None)
    except RuntimeError:
        return None


def _configure_logging(level: int) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(_RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def init_observability(app: Flask) -> None:
    """
    Wire structured logging and correlation ids into ``app``.

    JSON logging is installed on the root logger unless ``TESTING`` is set,
    leaving pytest's log capture in place. Every request gets a correlation
    id (taken from ``X-Correlation-ID`` or generated), echoed back on the
    response, and a ``request_finished`` log line with status and latency.
    """

    if not app.config.get("TESTING", False):
        _configure_logging(logging.DEBUG if app.config.get("DEBUG") else logging.INFO)

    @app.before_request
    def _start_request() -> None:  # type: ignore[unused-variable]
        g.correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        g.request_started = time.perf_counter()

    @app.after_request
    def _finish_request(response: Response) -> Response:  # type: ignore[unused-variable]
        cid = get_correlation_id()
        if cid:
            response.headers[CORRELATION_HEADER] = cid

        started = g.get("request_started")
        duration_ms = None if started is None else round((time.perf_counter() - started) * 1000, 2)
        request_logger.info(
            "Request finished",
            extra={
                "event": "request_finished",
                "http_status": response.status_code,
                "duration_ms": duration_ms,
                "correlation_id": cid,
            },
        )
        return response
