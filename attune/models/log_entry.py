"""
LogEntry: a user-authored journal record.

Rules:
- Immutable once created, except `ai_analysis` which is attached later.
- `metadata` is a JSON-encoded map stored as Text (stdlib json, no new deps).
- Deleting an entry cascades to its embedding.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Integer, String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attune.db.base import Base

if TYPE_CHECKING:
    from attune.models.embedding import LogEmbedding


class LogEntry(Base):
    __tablename__ = "log_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[str | None] = mapped_column(
        "metadata", Text, nullable=True,
        comment="JSON object of arbitrary metadata",
    )
    ai_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    embedding: Mapped["LogEmbedding | None"] = relationship(
        back_populates="log",
        cascade="all, delete-orphan",
        uselist=False,
    )
