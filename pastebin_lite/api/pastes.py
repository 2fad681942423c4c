from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, request
from pydantic import ValidationError

from pastebin_lite.api.deps import (
    get_paste_service,
    get_store,
    public_base_url,
    request_now,
)
from pastebin_lite.api.schemas import (
    HealthResponse,
    PasteCreateRequest,
    PasteCreateResponse,
    PasteReadResponse,
)
from pastebin_lite.clock import ms_to_iso
from pastebin_lite.errors import PasteValidationError, StoreError
from pastebin_lite.services.paste_service import ReadStatus


api_bp = Blueprint("api", __name__, url_prefix="/api")


UNAVAILABLE_MESSAGES = {
    ReadStatus.NOT_FOUND: "Paste not found",
    ReadStatus.EXPIRED: "Paste has expired",
    ReadStatus.LIMIT_EXCEEDED: "Paste view limit exceeded",
}


@api_bp.route("/healthz", methods=["GET"])
def health() -> tuple[dict, int]:
    """Health check: 200 when the paste store answers, 503 otherwise."""

    try:
        get_store().ping()
    except StoreError:
        current_app.logger.warning(
            "Health check failed",
            extra={"event": "health_check_failed"},
        )
        return HealthResponse(ok=False).model_dump(), HTTPStatus.SERVICE_UNAVAILABLE

    return HealthResponse().model_dump(), HTTPStatus.OK


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Body shape is checked by Pydantic; business rules by the service layer.
    """
    try:
        payload = PasteCreateRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return {"error": "Invalid request body", "details": str(exc)}, HTTPStatus.BAD_REQUEST

    try:
        created = get_paste_service().create_paste(
            content=payload.content,
            ttl_seconds=payload.ttl_seconds,
            max_views=payload.max_views,
            now=request_now(),
            base_url=public_base_url(),
        )
    except PasteValidationError as exc:
        return {"error": str(exc)}, HTTPStatus.BAD_REQUEST

    return PasteCreateResponse(**created).model_dump(), HTTPStatus.CREATED


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def read_paste(paste_id: str) -> tuple[dict, int]:
    """Return a paste as JSON, consuming one view."""

    result = get_paste_service().read_paste(paste_id, now=request_now())
    if not result.ok:
        return {"error": UNAVAILABLE_MESSAGES[result.status]}, HTTPStatus.NOT_FOUND

    paste = result.paste
    body = PasteReadResponse(
        content=paste.content,
        remaining_views=paste.remaining_views,
        expires_at=ms_to_iso(paste.expires_at),
    )
    return body.model_dump(), HTTPStatus.OK
