"""
Embedding and vector-store schemas.

POST /embedding      → EmbeddingRequest → EmbeddingResponse
POST /vector/upsert  → UpsertRequest    → UpsertResponse
POST /vector/search  → SearchRequest    → SearchResponse
GET  /vector/recent  →                  → SearchResponse
"""
from __future__ import annotations

from typing import Annotated, Any, Optional, Union

from pydantic import BeforeValidator, Field, model_validator

from attune.schemas.common import CamelModel


def _strip_non_empty(v: Any) -> Any:
    stripped = v.strip() if isinstance(v, str) else v
    if isinstance(stripped, str) and not stripped:
        raise ValueError("text must not be empty after stripping whitespace")
    return stripped


NonEmptyText = Annotated[str, BeforeValidator(_strip_non_empty), Field(min_length=1, max_length=20_000)]


class EmbeddingRequest(CamelModel):
    text: NonEmptyText


class EmbeddingResponse(CamelModel):
    embedding: list[float]
    model: str
    dimensions: int


class UpsertRequest(CamelModel):
    content: NonEmptyText
    metadata: dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = Field(default=None, max_length=128)


class UpsertResponse(CamelModel):
    success: bool = True
    id: Union[int, str]
    model: str
    dimensions: int
    content_length: int
    metadata: dict[str, Any]


class SearchRequest(CamelModel):
    """Search by free-text `query` (embedded server-side) or by a raw `embedding`."""
    query: Optional[str] = Field(default=None, min_length=1, max_length=20_000)
    embedding: Optional[list[float]] = None
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    limit: int = Field(default=5, ge=1, le=100)
    user_id: Optional[str] = Field(default=None, max_length=128)

    @model_validator(mode="after")
    def exactly_one_query(self) -> "SearchRequest":
        if (self.query is None) == (self.embedding is None):
            raise ValueError("provide exactly one of 'query' or 'embedding'")
        return self


class SearchResultOut(CamelModel):
    id: Union[int, str]
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity: Optional[float] = None


class SearchResponse(CamelModel):
    total: int
    items: list[SearchResultOut]
