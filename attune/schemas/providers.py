"""
Collaborator proxy schemas.

POST /cosmos     → CosmosRequest    → CosmicData
POST /astrology  → AstrologyRequest → AstrologicalInsight
"""
from __future__ import annotations

import datetime as dt
from typing import Any, Literal, Optional

from pydantic import Field, model_validator

from attune.schemas.common import CamelModel
from attune.schemas.context import BirthData


class CosmosRequest(CamelModel):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    location: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[dt.date] = None

    @model_validator(mode="after")
    def coordinates_or_place(self) -> "CosmosRequest":
        has_coords = self.latitude is not None and self.longitude is not None
        if not has_coords and not self.location:
            raise ValueError("either latitude/longitude or location must be provided")
        return self


class AstrologyRequest(CamelModel):
    birth_data: BirthData
    user_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    analysis_type: Literal["all", "personal_trading", "natal_chart", "transits"] = "all"
    options: dict[str, Any] = Field(default_factory=dict)
