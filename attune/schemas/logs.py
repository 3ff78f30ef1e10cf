"""
Journal (log entry) schemas.

POST /logs                 → LogCreateRequest → LogEntryResponse
GET  /logs                 →                  → LogListResponse
GET  /logs/{id}            →                  → LogEntryResponse
PUT  /logs/{id}/analysis   → AnalysisRequest  → LogEntryResponse
"""
from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import Field, field_validator

from attune.schemas.common import CamelModel


class LogCreateRequest(CamelModel):
    user_id: Annotated[str, Field(min_length=1, max_length=128)]
    category: Annotated[str, Field(
        min_length=1,
        max_length=64,
        description="Type tag, e.g. urge, leak, transmutation, energy.",
        examples=["urge", "transmutation"],
    )]
    content: Annotated[str, Field(min_length=1, max_length=10_000)]
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("content", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("content must not be empty after stripping whitespace")
        return stripped


class AnalysisRequest(CamelModel):
    analysis: Annotated[str, Field(min_length=1, max_length=20_000)]


class LogEntryResponse(CamelModel):
    id: int
    user_id: str
    category: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    ai_analysis: Optional[str] = None
    created_at: str
    embedded: Optional[bool] = Field(
        default=None,
        description="Set on creation: whether the entry's vector was stored.",
    )


class LogListResponse(CamelModel):
    total: int
    items: list[LogEntryResponse]
