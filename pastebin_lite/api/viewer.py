from __future__ import annotations

from http import HTTPStatus
from typing import Optional

from flask import Blueprint, current_app, render_template

from pastebin_lite.api.deps import get_paste_service, public_base_url, request_now
from pastebin_lite.clock import ms_to_datetime
from pastebin_lite.services.paste_service import ReadStatus, build_share_url


viewer_bp = Blueprint("viewer", __name__)


ERROR_PAGES = {
    ReadStatus.NOT_FOUND: ("Error - Paste Not Found", "Paste not found"),
    ReadStatus.EXPIRED: ("Error - Paste Expired", "This paste has expired"),
    ReadStatus.LIMIT_EXCEEDED: (
        "Error - View Limit Exceeded",
        "This paste has reached its view limit",
    ),
}


def _format_ms(value: Optional[int]) -> str:
    return ms_to_datetime(value).strftime("%Y-%m-%d %H:%M:%S UTC")


@viewer_bp.route("/", methods=["GET"])
def index():
    """Paste creation form; it posts JSON to the API and follows the returned URL."""

    return render_template("index.html", title="Pastebin Lite")


@viewer_bp.route("/p/<paste_id>", methods=["GET"])
def view_paste(paste_id: str):
    """Render a paste as HTML, consuming one view. Content is escaped by Jinja."""

    result = get_paste_service().read_paste(paste_id, now=request_now())
    if not result.ok:
        title, message = ERROR_PAGES[result.status]
        return (
            render_template("error.html", title=title, message=message),
            HTTPStatus.NOT_FOUND,
        )

    paste = result.paste
    metadata = [f"Created: {_format_ms(paste.created_at)}"]
    if paste.expires_at is not None:
        metadata.append(f"Expires: {_format_ms(paste.expires_at)}")
    if paste.remaining_views is not None:
        metadata.append(f"Views remaining: {paste.remaining_views}")

    return render_template(
        "paste.html",
        title=f"Paste - {paste.id}",
        paste_id=paste.id,
        content=paste.content,
        full_url=build_share_url(public_base_url(), paste.id),
        metadata=metadata,
    )


@viewer_bp.route("/config", methods=["GET"])
def service_config() -> tuple[dict, int]:
    """Describe the service and its endpoints."""

    return {
        "name": current_app.config.get("APP_NAME"),
        "version": current_app.config.get("APP_VERSION"),
        "endpoints": {
            "health": "/api/healthz",
            "createPaste": "POST /api/pastes",
            "getPaste": "GET /api/pastes/:id",
            "viewPaste": "GET /p/:id",
        },
    }, HTTPStatus.OK
