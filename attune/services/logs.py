"""
Journal write path.

Rules:
- The entry is committed first. Embedding and vector upsert follow and
  their failure never undoes the entry; the caller learns the outcome
  through `embedded`.
- The vector's metadata always carries `timestamp`, `type` and `log_id`
  so retrieval can filter by recency and render the category.
- `ai_analysis` is the only field that changes after creation.

Public API
----------
create_log_entry(db, user_id, category, content, metadata, embedder, store) -> tuple[LogEntry, bool]
list_log_entries(db, user_id, category, limit, offset)                      -> tuple[int, list[LogEntry]]
get_log_entry(db, log_id)                                                   -> LogEntry
delete_log_entry(db, log_id)                                                -> None
attach_analysis(db, log_id, analysis)                                       -> LogEntry
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from attune.core.errors import AttuneException, LogEntryNotFoundError
from attune.models.log_entry import LogEntry
from attune.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


def _jdump(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


def create_log_entry(
    db: Session,
    user_id: str,
    category: str,
    content: str,
    metadata: Optional[dict[str, Any]],
    embedder,
    store: Optional[VectorStore],
) -> tuple[LogEntry, bool]:
    """Store the entry, then embed and index it. Returns (entry, embedded)."""
    meta = dict(metadata or {})
    entry = LogEntry(user_id=user_id, category=category, content=content, meta=_jdump(meta))
    db.add(entry)
    db.commit()
    db.refresh(entry)

    if embedder is None or store is None or not embedder.configured:
        logger.info("Embedding not configured; log %s stored without a vector", entry.id)
        return entry, False

    created = entry.created_at or datetime.now(tz=timezone.utc)
    vector_meta = {
        **meta,
        "timestamp": created.isoformat(),
        "type": category,
        "log_id": entry.id,
    }
    try:
        result = embedder.embed(content)
        store.upsert(
            content,
            result.vector,
            {**vector_meta, "model": result.model},
            user_id=user_id,
            log_id=entry.id,
        )
    except AttuneException as exc:
        logger.warning("Failed to index log %s: %s", entry.id, exc.message)
        return entry, False
    return entry, True


def list_log_entries(
    db: Session,
    user_id: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[LogEntry]]:
    q = db.query(LogEntry)
    if user_id is not None:
        q = q.filter(LogEntry.user_id == user_id)
    if category is not None:
        q = q.filter(LogEntry.category == category)
    total = q.count()
    items = q.order_by(LogEntry.created_at.desc(), LogEntry.id.desc()).offset(offset).limit(limit).all()
    return total, items


def get_log_entry(db: Session, log_id: int) -> LogEntry:
    entry = db.get(LogEntry, log_id)
    if entry is None:
        raise LogEntryNotFoundError(log_id=log_id)
    return entry


def delete_log_entry(db: Session, log_id: int) -> None:
    """Delete the entry; its embedding goes with it."""
    entry = get_log_entry(db, log_id)
    db.delete(entry)
    db.commit()


def attach_analysis(db: Session, log_id: int, analysis: str) -> LogEntry:
    entry = get_log_entry(db, log_id)
    entry.ai_analysis = analysis
    db.commit()
    db.refresh(entry)
    return entry
