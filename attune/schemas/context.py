"""
Context source schemas: the optional data objects a client may send with a
synthesis or chat request, and the shapes the cosmic / astrology providers
return.

Every field is optional. The formatters in `attune.services.context` render a
missing field as "Unknown" instead of failing, so these models deliberately
avoid required fields below the top level.

Blueprint and health objects come from the app clients and use camelCase.
Cosmic and astrology payloads mirror the upstream provider JSON (snake_case);
only the three top-level astrology keys are camelCase.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from attune.schemas.common import CamelModel


# ---------------------------------------------------------------------------
# Client-supplied sources
# ---------------------------------------------------------------------------

class HumanDesignChart(CamelModel):
    """Psychometric blueprint. Consumed as an opaque contract, never recomputed."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    strategy: Optional[str] = None
    authority: Optional[str] = None
    profile: Optional[str] = None
    definition: Optional[str] = None
    incarnation_cross: Optional[str] = None
    centers: Optional[dict[str, bool]] = Field(
        default=None,
        description="Center name → defined flag.",
        examples=[{"sacral": True, "head": False}],
    )
    gates: Optional[list[int]] = None
    channels: Optional[list[int]] = None


class HealthMetrics(CamelModel):
    """Vessel metrics synced from the device health store."""
    steps: Optional[int] = Field(default=None, ge=0)
    sleep_hours: Optional[float] = Field(default=None, ge=0)
    walking_asymmetry: Optional[float] = None
    last_sync: Optional[datetime] = None


class Location(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class BirthData(CamelModel):
    year: int = Field(ge=1800, le=2200)
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)
    hour: int = Field(default=12, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    city: str = "New York"
    country_code: str = "US"

    def to_provider(self) -> dict:
        return {
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "hour": self.hour,
            "minute": self.minute,
            "city": self.city,
            "country_code": self.country_code,
        }


# ---------------------------------------------------------------------------
# Cosmic (astronomy provider)
# ---------------------------------------------------------------------------

class MorningTimes(BaseModel):
    astronomical_twilight_begin: Optional[str] = None
    civil_twilight_begin: Optional[str] = None
    golden_hour_begin: Optional[str] = None
    golden_hour_end: Optional[str] = None


class EveningTimes(BaseModel):
    golden_hour_begin: Optional[str] = None
    golden_hour_end: Optional[str] = None
    civil_twilight_end: Optional[str] = None
    astronomical_twilight_end: Optional[str] = None


class Astronomy(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: Optional[str] = None
    current_time: Optional[str] = None
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    solar_noon: Optional[str] = None
    day_length: Optional[str] = None
    sun_altitude: Optional[float] = None
    sun_azimuth: Optional[float] = None
    sun_distance: Optional[float] = None
    moon_phase: Optional[str] = None
    moonrise: Optional[str] = None
    moonset: Optional[str] = None
    moon_altitude: Optional[float] = None
    moon_azimuth: Optional[float] = None
    moon_illumination_percentage: Optional[Union[float, str]] = None
    morning: Optional[MorningTimes] = None
    evening: Optional[EveningTimes] = None


class CosmicLocation(BaseModel):
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class CosmicData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    location: Optional[CosmicLocation] = None
    astronomy: Optional[Astronomy] = None
    cached_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Astrology (transits provider)
# ---------------------------------------------------------------------------

class Planet(BaseModel):
    name: Optional[str] = None
    sign: Optional[str] = None
    house: Optional[int] = None
    degree: Optional[float] = None


class NatalChart(BaseModel):
    sun_sign: Optional[str] = None
    moon_sign: Optional[str] = None
    ascendant: Optional[str] = None
    planets: list[Planet] = Field(default_factory=list)


class Aspect(BaseModel):
    planet1: Optional[str] = None
    planet2: Optional[str] = None
    aspect: Optional[str] = None
    orb: Optional[float] = None
    interpretation: Optional[str] = None


class Transits(BaseModel):
    major_aspects: list[Aspect] = Field(default_factory=list)
    transit_interpretations: list[str] = Field(default_factory=list)


class Period(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    description: Optional[str] = None
    planetary_influence: Optional[str] = None


class LunarInfluence(BaseModel):
    phase: Optional[str] = None
    trading_advice: Optional[str] = None


class PersonalTiming(BaseModel):
    """Personalized timing advice (the provider calls it "personal trading")."""
    overall_rating: Optional[float] = None
    favorable_periods: list[Period] = Field(default_factory=list)
    caution_periods: list[Period] = Field(default_factory=list)
    recommended_approach: Optional[str] = None
    lunar_cycle_influence: Optional[LunarInfluence] = None


class AstrologicalInsight(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    natal_chart: Optional[NatalChart] = Field(default=None, alias="natalChart")
    transits: Optional[Transits] = None
    personal_trading: Optional[PersonalTiming] = Field(default=None, alias="personalTrading")
    cached_at: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.natal_chart is None and self.transits is None and self.personal_trading is None
