from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from pastebin_lite.db import Base


ID_LENGTH = 10

# Upper bound of the 32-bit ``max_views`` column.
MAX_VIEWS_LIMIT = 2**31 - 1


class Paste(Base):
    """Paste entity persisted via SQLAlchemy. Timestamps are epoch milliseconds."""

    __tablename__ = "pastes"
    __table_args__ = (
        CheckConstraint(
            "max_views IS NULL OR max_views >= 1",
            name="ck_pastes_max_views_min_1",
        ),
        CheckConstraint(
            "view_count >= 0",
            name="ck_pastes_view_count_non_negative",
        ),
        CheckConstraint(
            "max_views IS NULL OR view_count <= max_views",
            name="ck_pastes_view_count_within_quota",
        ),
        CheckConstraint(
            "expires_at IS NULL OR expires_at > created_at",
            name="ck_pastes_expires_after_created",
        ),
        Index("ix_pastes_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    @validates("content")
    def _validate_immutable_content(self, key: str, value: str) -> str:
        """
        Enforce that ``content`` is immutable after initial creation.

        The value can be set on new instances, but any subsequent attempt to
        change it will raise an error.
        """

        if getattr(self, "content", None) is not None and self.content != value:
            raise ValueError("Paste content is immutable and cannot be modified.")
        return value


@dataclass(frozen=True)
class PasteRecord:
    """Snapshot of a stored paste as returned by the store."""

    id: str
    content: str
    created_at: int
    expires_at: Optional[int] = None
    max_views: Optional[int] = None
    view_count: int = 0

    @classmethod
    def from_entity(cls, paste: Paste) -> "PasteRecord":
        return cls(
            id=paste.id,
            content=paste.content,
            created_at=int(paste.created_at),
            expires_at=None if paste.expires_at is None else int(paste.expires_at),
            max_views=paste.max_views,
            view_count=int(paste.view_count),
        )

    def to_entity(self) -> Paste:
        return Paste(
            id=self.id,
            content=self.content,
            created_at=self.created_at,
            expires_at=self.expires_at,
            max_views=self.max_views,
            view_count=self.view_count,
        )
