"""
LogEmbedding: a fixed-width vector derived from a LogEntry (or standalone content).

Rules:
- Written once, never updated.
- `vector` holds a JSON array whose length is exactly EMBEDDING_DIMENSIONS;
  the vector store rejects anything else before writing.
- `content` is denormalized so search results render without a join.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attune.db.base import Base

if TYPE_CHECKING:
    from attune.models.log_entry import LogEntry

EMBEDDING_DIMENSIONS = 384


class LogEmbedding(Base):
    __tablename__ = "log_embeddings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    log_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("log_entries.id", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    vector: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment="JSON array of EMBEDDING_DIMENSIONS floats",
    )
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    meta: Mapped[str | None] = mapped_column(
        "metadata", Text, nullable=True,
        comment="JSON object: type, timestamp, log_id …",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    log: Mapped["LogEntry | None"] = relationship(back_populates="embedding")
