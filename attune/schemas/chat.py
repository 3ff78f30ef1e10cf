"""
Conversational RAG schemas.

POST /chat → ChatRequest → ChatResponse
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional

from pydantic import Field, field_validator

from attune.schemas.common import CamelModel
from attune.schemas.context import (
    AstrologicalInsight,
    BirthData,
    CosmicData,
    HealthMetrics,
    HumanDesignChart,
)


class ChatTurn(CamelModel):
    role: Literal["user", "model"]
    content: str


class ChatRequest(CamelModel):
    message: Annotated[str, Field(min_length=1, max_length=8_000)]
    user_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    history: list[ChatTurn] = Field(default_factory=list, max_length=50)
    human_design_chart: Optional[HumanDesignChart] = None
    health_metrics: Optional[HealthMetrics] = None
    cosmic_data: Optional[CosmicData] = None
    astrology_data: Optional[AstrologicalInsight] = None
    birth_data: Optional[BirthData] = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("message must not be empty after stripping whitespace")
        return stripped


class ChatSource(CamelModel):
    content: str
    similarity: float
    type: Optional[str] = None
    timestamp: Optional[str] = None


class ChatResponse(CamelModel):
    reply: str
    sources: list[ChatSource] = Field(
        default_factory=list,
        description="Journal entries retrieved by semantic search for this turn.",
    )
