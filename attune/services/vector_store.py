"""
Vector store: persists (content, vector, metadata) and answers similarity queries.

Rules:
- Every vector is checked against EMBEDDING_DIMENSIONS before any I/O;
  a mismatch raises DimensionError.
- Search results are ordered by descending similarity, never below the
  threshold, and at most `limit` long.
- Search never raises for connectivity or permission failures: it logs and
  returns []. Callers treat "no results" and "store unavailable" alike.
- A record written by `upsert` is not guaranteed to be searchable within
  the same request.

Backends
--------
SqlVectorStore        vectors as JSON in `log_embeddings`, ranked with numpy
SupabaseVectorStore   hosted Postgres + pgvector through the supabase client
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence, Union

import numpy as np
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from supabase import Client

from attune.core.errors import DimensionError, InvalidInputError, VectorStoreError
from attune.models.embedding import EMBEDDING_DIMENSIONS, LogEmbedding

logger = logging.getLogger(__name__)

RecordId = Union[int, str]


@dataclass
class SemanticSearchResult:
    id: RecordId
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


def _jload_map(text: Optional[str]) -> dict[str, Any]:
    if not text:
        return {}
    try:
        result = json.loads(text)
        return result if isinstance(result, dict) else {}
    except (ValueError, TypeError):
        return {}


def validate_dimensions(vector: Sequence[float]) -> None:
    if len(vector) != EMBEDDING_DIMENSIONS:
        raise DimensionError(expected=EMBEDDING_DIMENSIONS, received=len(vector))


def _validate_query(threshold: float, limit: int) -> None:
    if not 0.0 <= threshold <= 1.0:
        raise InvalidInputError(
            "Similarity threshold must be within [0, 1].", details={"threshold": threshold}
        )
    if limit < 1:
        raise InvalidInputError("Limit must be at least 1.", details={"limit": limit})


def _rank(
    candidates: list[SemanticSearchResult], threshold: float, limit: int
) -> list[SemanticSearchResult]:
    kept = [c for c in candidates if c.similarity >= threshold]
    kept.sort(key=lambda c: c.similarity, reverse=True)
    return kept[:limit]


class VectorStore(ABC):
    """Narrow interface the rest of the service depends on."""

    @abstractmethod
    def upsert(
        self,
        content: str,
        vector: Sequence[float],
        metadata: dict[str, Any],
        *,
        user_id: Optional[str] = None,
        log_id: Optional[int] = None,
    ) -> RecordId:
        ...

    @abstractmethod
    def search_by_similarity(
        self,
        query_vector: Sequence[float],
        threshold: float = 0.7,
        limit: int = 5,
        *,
        user_id: Optional[str] = None,
    ) -> list[SemanticSearchResult]:
        ...

    @abstractmethod
    def recent(self, limit: int = 10, *, user_id: Optional[str] = None) -> list[SemanticSearchResult]:
        ...


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

class SqlVectorStore(VectorStore):
    """
    Brute-force cosine ranking over the rows of `log_embeddings`.
    Fine for a single user's journal; swap in the pgvector backend at scale.
    """

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, content, vector, metadata, *, user_id=None, log_id=None) -> int:
        validate_dimensions(vector)
        row = LogEmbedding(
            log_id=log_id,
            user_id=user_id,
            content=content,
            vector=json.dumps([float(x) for x in vector]),
            model=metadata.get("model"),
            meta=json.dumps(metadata, ensure_ascii=False, default=str),
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Vector upsert failed: %s", exc)
            raise VectorStoreError("Failed to upsert embedding.") from exc
        return row.id

    def _rows(self, user_id: Optional[str]):
        q = self.db.query(LogEmbedding)
        if user_id is not None:
            q = q.filter(LogEmbedding.user_id == user_id)
        return q

    def search_by_similarity(self, query_vector, threshold=0.7, limit=5, *, user_id=None):
        validate_dimensions(query_vector)
        _validate_query(threshold, limit)
        try:
            rows = self._rows(user_id).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Semantic search failed: %s", exc)
            return []

        vectors: list[list[float]] = []
        kept_rows: list[LogEmbedding] = []
        for row in rows:
            try:
                vec = json.loads(row.vector)
            except (ValueError, TypeError):
                logger.warning("Skipping embedding %s: unreadable vector", row.id)
                continue
            if not isinstance(vec, list) or len(vec) != EMBEDDING_DIMENSIONS:
                logger.warning("Skipping embedding %s: wrong dimension", row.id)
                continue
            vectors.append(vec)
            kept_rows.append(row)
        if not kept_rows:
            return []

        matrix = np.asarray(vectors, dtype=float)
        query = np.asarray(query_vector, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        sims = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        candidates = [
            SemanticSearchResult(
                id=row.id,
                content=row.content,
                similarity=min(1.0, float(sim)),
                metadata=_jload_map(row.meta),
                created_at=row.created_at,
            )
            for row, sim in zip(kept_rows, sims)
        ]
        return _rank(candidates, threshold, limit)

    def recent(self, limit=10, *, user_id=None):
        try:
            rows = (
                self._rows(user_id)
                .order_by(LogEmbedding.created_at.desc(), LogEmbedding.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Fetching recent embeddings failed: %s", exc)
            return []
        return [
            SemanticSearchResult(
                id=row.id,
                content=row.content,
                similarity=1.0,
                metadata=_jload_map(row.meta),
                created_at=row.created_at,
            )
            for row in rows
        ]


# ---------------------------------------------------------------------------
# Hosted pgvector backend
# ---------------------------------------------------------------------------

def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class SupabaseVectorStore(VectorStore):
    """
    Hosted pgvector table behind the supabase client:
    - insert into `table` (content, embedding, metadata, log_id)
    - RPC `match_function(query_embedding, match_threshold, match_count)`

    The service-role key bypasses row-level security, so ownership is enforced
    here on metadata.user_id. A scoped query only returns rows whose owner
    equals `user_id`; ownerless rows are returned to unscoped queries only.
    The match RPC applies `match_count` before that filter, so scoped searches
    over-fetch by USER_SCOPE_OVERFETCH.
    """

    USER_SCOPE_OVERFETCH = 10
    MAX_MATCH_COUNT = 500

    def __init__(
        self,
        client: Client,
        table: str = "sovereign_log_embeddings",
        match_function: str = "match_sovereign_logs",
    ):
        self.client = client
        self.table = table
        self.match_function = match_function

    @staticmethod
    def _to_result(row: dict[str, Any], similarity: Optional[float] = None) -> SemanticSearchResult:
        metadata = row.get("metadata") or {}
        return SemanticSearchResult(
            id=row.get("id"),
            content=row.get("content") or "",
            similarity=float(similarity if similarity is not None else row.get("similarity") or 0.0),
            metadata=metadata if isinstance(metadata, dict) else {},
            created_at=_parse_timestamp(row.get("created_at")),
        )

    @staticmethod
    def _owned_by(result: SemanticSearchResult, user_id: Optional[str]) -> bool:
        return user_id is None or result.metadata.get("user_id") == user_id

    def upsert(self, content, vector, metadata, *, user_id=None, log_id=None) -> str:
        validate_dimensions(vector)
        record: dict[str, Any] = {
            "content": content,
            "embedding": [float(x) for x in vector],
            "metadata": {**metadata, **({"user_id": user_id} if user_id else {})},
        }
        if log_id is not None:
            record["log_id"] = log_id
        try:
            response = self.client.table(self.table).insert(record).execute()
        except Exception as exc:
            logger.error("Vector upsert failed: %s", exc)
            raise VectorStoreError("Failed to upsert embedding.", details={"raw": str(exc)[:500]}) from exc

        rows = response.data or []
        if not rows or not isinstance(rows[0], dict) or "id" not in rows[0]:
            logger.error("Vector upsert returned no row: %r", response.data)
            raise VectorStoreError("Vector store did not return the stored row.")
        return rows[0]["id"]

    def search_by_similarity(self, query_vector, threshold=0.7, limit=5, *, user_id=None):
        validate_dimensions(query_vector)
        _validate_query(threshold, limit)
        match_count = limit
        if user_id is not None:
            match_count = min(limit * self.USER_SCOPE_OVERFETCH, self.MAX_MATCH_COUNT)
        try:
            response = self.client.rpc(
                self.match_function,
                {
                    "query_embedding": [float(x) for x in query_vector],
                    "match_threshold": threshold,
                    "match_count": match_count,
                },
            ).execute()
        except Exception as exc:
            logger.error("Semantic search failed: %s", exc)
            return []

        rows = response.data or []
        candidates = [self._to_result(row) for row in rows if isinstance(row, dict)]
        candidates = [c for c in candidates if self._owned_by(c, user_id)]
        return _rank(candidates, threshold, limit)

    def recent(self, limit=10, *, user_id=None):
        try:
            query = self.client.table(self.table).select("id,content,metadata,created_at")
            if user_id is not None:
                query = query.contains("metadata", {"user_id": user_id})
            response = query.order("created_at", desc=True).limit(limit).execute()
        except Exception as exc:
            logger.error("Fetching recent embeddings failed: %s", exc)
            return []
        rows = response.data or []
        results = [self._to_result(row, similarity=1.0) for row in rows if isinstance(row, dict)]
        return [r for r in results if self._owned_by(r, user_id)]
