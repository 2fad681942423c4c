from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, StrictInt


class PasteCreateRequest(BaseModel):
    content: str = Field(..., description="Paste content")
    ttl_seconds: Optional[StrictInt] = Field(
        default=None,
        description="Optional time-to-live in seconds (>= 1)",
    )
    max_views: Optional[StrictInt] = Field(
        default=None,
        description="Optional maximum number of views (>= 1)",
    )


class PasteCreateResponse(BaseModel):
    id: str
    url: str


class PasteReadResponse(BaseModel):
    content: str
    remaining_views: Optional[int]
    expires_at: Optional[str] = Field(
        default=None,
        description="ISO-8601 UTC expiry timestamp, or null when the paste has no TTL",
    )


class HealthResponse(BaseModel):
    ok: bool = True
