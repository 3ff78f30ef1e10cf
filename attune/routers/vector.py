"""
Embedding and vector-store router.

POST /embedding       — Embed text (384-dimensional vector)
POST /vector/upsert   — Embed content and store it
POST /vector/search   — Similarity search by text or by raw vector
GET  /vector/recent   — Most recently stored items
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from attune.core.deps import get_embedder, get_vector_store
from attune.schemas.common import ErrorResponse
from attune.schemas.vector import (
    EmbeddingRequest,
    EmbeddingResponse,
    SearchRequest,
    SearchResponse,
    SearchResultOut,
    UpsertRequest,
    UpsertResponse,
)
from attune.services.embeddings import EmbeddingClient
from attune.services.vector_store import SemanticSearchResult, VectorStore

router = APIRouter(tags=["vector"])

_ERROR_RESPONSES = {
    422: {"model": ErrorResponse, "description": "Validation error or wrong vector dimension."},
    429: {"model": ErrorResponse, "description": "Embedding provider rate limit; see the Retry-After header."},
    500: {"model": ErrorResponse, "description": "Missing credentials or provider failure."},
}


def _to_out(result: SemanticSearchResult) -> SearchResultOut:
    return SearchResultOut(
        id=result.id,
        content=result.content,
        metadata=result.metadata,
        similarity=result.similarity,
    )


@router.post(
    "/embedding",
    response_model=EmbeddingResponse,
    summary="Generate an embedding",
    responses=_ERROR_RESPONSES,
)
def create_embedding(payload: EmbeddingRequest, embedder: EmbeddingClient = Depends(get_embedder)):
    """Texts longer than 2000 characters are truncated before embedding."""
    result = embedder.embed(payload.text)
    return EmbeddingResponse(embedding=result.vector, model=result.model, dimensions=result.dimensions)


@router.post(
    "/vector/upsert",
    response_model=UpsertResponse,
    summary="Embed and store content",
    responses=_ERROR_RESPONSES,
)
def upsert_vector(
    payload: UpsertRequest,
    embedder: EmbeddingClient = Depends(get_embedder),
    store: VectorStore = Depends(get_vector_store),
):
    """`metadata.timestamp` defaults to now when absent."""
    result = embedder.embed(payload.content)
    metadata = {
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        **payload.metadata,
        "model": result.model,
    }
    record_id = store.upsert(payload.content, result.vector, metadata, user_id=payload.user_id)
    return UpsertResponse(
        id=record_id,
        model=result.model,
        dimensions=result.dimensions,
        content_length=len(payload.content),
        metadata=metadata,
    )


@router.post(
    "/vector/search",
    response_model=SearchResponse,
    summary="Semantic search",
    responses=_ERROR_RESPONSES,
)
def search_vectors(
    payload: SearchRequest,
    embedder: EmbeddingClient = Depends(get_embedder),
    store: VectorStore = Depends(get_vector_store),
):
    """
    Provide either `query` (embedded server-side) or `embedding` (384 floats).
    Results are ordered by descending similarity and never fall below
    `threshold`. An unreachable store yields an empty list, not an error.
    """
    vector = payload.embedding if payload.embedding is not None else embedder.embed(payload.query).vector
    results = store.search_by_similarity(
        vector, payload.threshold, payload.limit, user_id=payload.user_id
    )
    return SearchResponse(total=len(results), items=[_to_out(r) for r in results])


@router.get("/vector/recent", response_model=SearchResponse, summary="Recently stored items")
def recent_vectors(
    limit: int = Query(default=10, ge=1, le=100, description="Page size."),
    user_id: Optional[str] = Query(default=None, alias="userId", description="Filter by owner."),
    store: VectorStore = Depends(get_vector_store),
):
    results = store.recent(limit, user_id=user_id)
    return SearchResponse(total=len(results), items=[_to_out(r) for r in results])
