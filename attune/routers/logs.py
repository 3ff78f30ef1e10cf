"""
Journal router.

POST   /logs                — Create an entry and index it for semantic search
GET    /logs                — List entries (paginated, newest first)
GET    /logs/{id}           — Single entry
DELETE /logs/{id}           — Delete an entry and its embedding
PUT    /logs/{id}/analysis  — Attach the AI analysis text
"""
from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from attune.core.deps import get_embedder, get_vector_store
from attune.db.base import get_db
from attune.models.log_entry import LogEntry
from attune.schemas.logs import AnalysisRequest, LogCreateRequest, LogEntryResponse, LogListResponse
from attune.services.embeddings import EmbeddingClient
from attune.services.logs import (
    attach_analysis,
    create_log_entry,
    delete_log_entry,
    get_log_entry,
    list_log_entries,
)
from attune.services.vector_store import VectorStore

router = APIRouter(prefix="/logs", tags=["logs"])


def _entry_to_response(entry: LogEntry, embedded: Optional[bool] = None) -> LogEntryResponse:
    try:
        meta = json.loads(entry.meta) if entry.meta else {}
    except (ValueError, TypeError):
        meta = {}
    return LogEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        category=entry.category,
        content=entry.content,
        metadata=meta if isinstance(meta, dict) else {},
        ai_analysis=entry.ai_analysis,
        created_at=entry.created_at.isoformat() if entry.created_at else "",
        embedded=embedded,
    )


@router.post(
    "",
    response_model=LogEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a journal entry",
    responses={
        201: {"description": "Entry stored. `embedded` tells whether it is searchable."},
        422: {"description": "Validation error."},
    },
)
def create_log(
    payload: LogCreateRequest,
    db: Session = Depends(get_db),
    embedder: EmbeddingClient = Depends(get_embedder),
    store: VectorStore = Depends(get_vector_store),
):
    """
    Store the entry, then embed it and upsert the vector with `timestamp`,
    `type` and `log_id` metadata. An embedding failure keeps the entry and
    returns `embedded: false`.
    """
    entry, embedded = create_log_entry(
        db,
        user_id=payload.user_id,
        category=payload.category,
        content=payload.content,
        metadata=payload.metadata,
        embedder=embedder,
        store=store,
    )
    return _entry_to_response(entry, embedded=embedded)


@router.get("", response_model=LogListResponse, summary="List journal entries")
def list_logs(
    user_id: Optional[str] = Query(default=None, alias="userId", description="Filter by owner."),
    category: Optional[str] = Query(default=None, description="Filter by type tag.", examples=["urge"]),
    limit: int = Query(default=20, ge=1, le=100, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    total, items = list_log_entries(db, user_id=user_id, category=category, limit=limit, offset=offset)
    return LogListResponse(total=total, items=[_entry_to_response(e) for e in items])


@router.get(
    "/{log_id}",
    response_model=LogEntryResponse,
    summary="Retrieve a journal entry",
    responses={404: {"description": "Entry not found."}},
)
def get_log(log_id: int, db: Session = Depends(get_db)):
    return _entry_to_response(get_log_entry(db, log_id))


@router.delete(
    "/{log_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a journal entry",
    responses={404: {"description": "Entry not found."}},
)
def delete_log(log_id: int, db: Session = Depends(get_db)):
    """Deleting an entry also removes its stored vector."""
    delete_log_entry(db, log_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{log_id}/analysis",
    response_model=LogEntryResponse,
    summary="Attach AI analysis to an entry",
    responses={404: {"description": "Entry not found."}},
)
def put_analysis(log_id: int, payload: AnalysisRequest, db: Session = Depends(get_db)):
    return _entry_to_response(attach_analysis(db, log_id, payload.analysis))
