from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Flask, render_template, request
from werkzeug.exceptions import HTTPException

from pastebin_lite.errors import ResourceExhausted, StoreError
from pastebin_lite.observability import get_correlation_id

from .pastes import api_bp
from .viewer import viewer_bp


logger = logging.getLogger(__name__)


def _wants_json() -> bool:
    if request.path.startswith("/api/"):
        return True
    best = request.accept_mimetypes.best_match(["text/html", "application/json"])
    return best != "text/html"


def _error_response(message: str, status: HTTPStatus):
    if _wants_json():
        return {"error": message}, status
    return (
        render_template("error.html", title=f"Error - {status.phrase}", message=message),
        status,
    )


def register_error_handlers(app: Flask) -> None:
    """Map infrastructure failures and unknown routes onto HTTP responses."""

    @app.errorhandler(StoreError)
    def _store_error(exc: StoreError):  # type: ignore[unused-variable]
        logger.warning(
            "Paste store unavailable",
            extra={
                "event": "store_unavailable",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return _error_response(
            "Service temporarily unavailable, try again",
            HTTPStatus.SERVICE_UNAVAILABLE,
        )

    @app.errorhandler(ResourceExhausted)
    def _resource_exhausted(exc: ResourceExhausted):  # type: ignore[unused-variable]
        return _error_response("Could not allocate a paste id", HTTPStatus.INTERNAL_SERVER_ERROR)

    @app.errorhandler(HTTPStatus.NOT_FOUND)
    def _not_found(_exc: HTTPException):  # type: ignore[unused-variable]
        if _wants_json():
            return {"error": "Route not found"}, HTTPStatus.NOT_FOUND
        return (
            render_template("error.html", title="Page Not Found", message="Page not found"),
            HTTPStatus.NOT_FOUND,
        )

    @app.errorhandler(Exception)
    def _unhandled(exc: Exception):  # type: ignore[unused-variable]
        if isinstance(exc, HTTPException):
            return exc
        logger.exception(
            "Unhandled error",
            extra={
                "event": "unhandled_error",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return _error_response("Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR)


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(api_bp)
    app.register_blueprint(viewer_bp)
