"""
Attunement request / response schemas.

POST /attunement → AttunementRequest → AttunementResponse
GET  /attunement → AttunementStatusResponse

Wire format is camelCase; Python attributes stay snake_case.
"""
from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import Field

from attune.schemas.common import CamelModel
from attune.schemas.context import (
    AstrologicalInsight,
    BirthData,
    CosmicData,
    HealthMetrics,
    HumanDesignChart,
    Location,
)


class AttunementRequest(CamelModel):
    """Optional context sources for today's synthesis. All fields may be omitted."""
    user_id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=128,
        description="Owner of the attunement. Required unless ALLOW_ANONYMOUS_USER is set.",
    )
    human_design_chart: Optional[HumanDesignChart] = None
    health_metrics: Optional[HealthMetrics] = None
    cosmic_data: Optional[CosmicData] = None
    astrology_data: Optional[AstrologicalInsight] = None
    location: Optional[Location] = Field(
        default=None,
        description="Used to fetch cosmic data on the fly when cosmicData is absent.",
    )
    birth_data: Optional[BirthData] = Field(
        default=None,
        description="Used to fetch astrological transits on the fly when astrologyData is absent.",
    )


class BasedOn(CamelModel):
    """Provenance: which sources actually contributed to the synthesis."""
    log_count: int = 0
    human_design_available: bool = False
    health_metrics_available: bool = False
    cosmic_data_available: bool = False
    astrology_data_available: bool = False


class AttunementResponse(CamelModel):
    id: Optional[int] = Field(default=None, description="Database ID, absent if persistence failed.")
    date: dt.date
    insightful_question: str
    synthesized_answer: str
    generated_at: dt.datetime
    based_on: BasedOn
    cached: bool
    cached_at: Optional[dt.datetime] = Field(
        default=None,
        description="Present only when the result was served from cache.",
    )


class CacheStats(CamelModel):
    entries: int
    ttl_hours: int


class AttunementStatusResponse(CamelModel):
    status: str = "healthy"
    endpoint: str = "/attunement"
    methods: list[str] = ["POST"]
    description: str
    configured: dict[str, bool]
    cache_stats: CacheStats
