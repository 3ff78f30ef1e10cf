"""
On-the-fly context collaborators: astronomy (cosmic) data and astrological
transits. Both sit behind their own caches so repeated synthesis or chat
requests do not re-bill the upstream APIs.

CosmosClient     24h cache keyed by coordinates (or place name) and date
AstrologyClient  24h cache keyed by user, birth data and day; at most 100 entries

Both raise ConfigurationError when their credentials are missing and
UpstreamError for provider failures. The context aggregator turns either
into fallback text.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional

import httpx

from attune.core.errors import ConfigurationError, InvalidInputError, UpstreamError, UpstreamTimeoutError
from attune.schemas.context import (
    AstrologicalInsight,
    Aspect,
    BirthData,
    CosmicData,
    LunarInfluence,
    NatalChart,
    Period,
    PersonalTiming,
    Planet,
    Transits,
)
from attune.services.cache import Clock, TTLCache, utcnow

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(hours=24)
ASTROLOGY_CACHE_MAX_ENTRIES = 100


# ---------------------------------------------------------------------------
# Cosmos
# ---------------------------------------------------------------------------

class CosmosClient:
    provider = "astronomy"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        timeout: float = 10.0,
        cache: Optional[TTLCache[CosmicData]] = None,
        clock: Clock = utcnow,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._clock = clock
        self.cache: TTLCache[CosmicData] = cache if cache is not None else TTLCache(ttl=CACHE_TTL, clock=clock)
        self._http = http_client or httpx.Client(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def cache_key(
        self,
        latitude: Optional[float],
        longitude: Optional[float],
        location: Optional[str],
        day: Optional[date],
    ) -> str:
        when = (day or self._clock().date()).isoformat()
        if location:
            return f"loc:{location}:{when}"
        return f"coords:{latitude},{longitude}:{when}"

    def fetch(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        location: Optional[str] = None,
        day: Optional[date] = None,
    ) -> CosmicData:
        if not self.api_key:
            raise ConfigurationError("IPGEOLOCATION_API_KEY")
        if not location and (latitude is None or longitude is None):
            raise InvalidInputError("Either latitude/longitude or location must be provided.")

        key = self.cache_key(latitude, longitude, location, day)
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("Cosmos cache hit for %s", key)
            return hit.value

        params: dict[str, str] = {"apiKey": self.api_key}
        if location:
            params["location"] = location
        else:
            params["lat"] = str(latitude)
            params["long"] = str(longitude)
        if day:
            params["date"] = day.isoformat()

        try:
            response = self._http.get(self.base_url, params=params, headers={"Accept": "application/json"})
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(self.provider, "Astronomy request timed out.", raw=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(self.provider, "Failed to fetch cosmic data.", raw=str(exc)) from exc
        if response.status_code >= 400:
            raise UpstreamError(
                self.provider,
                "Failed to fetch cosmic data.",
                raw=response.text,
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError(self.provider, "Malformed astronomy response.", raw=response.text) from exc

        data = _structure_cosmic(body, latitude, longitude)
        entry = self.cache.put(key, data)
        data.cached_at = entry.cached_at.isoformat()
        return data

    def close(self) -> None:
        self._http.close()


def _structure_cosmic(body: dict[str, Any], latitude: Optional[float], longitude: Optional[float]) -> CosmicData:
    """Flat provider payloads put astronomy fields at top level; nested ones under `astronomy`."""
    loc = body.get("location") or {}
    astro = body.get("astronomy") if isinstance(body.get("astronomy"), dict) else body
    return CosmicData.model_validate({
        "location": {
            "latitude": str(loc.get("latitude") or (latitude if latitude is not None else "")),
            "longitude": str(loc.get("longitude") or (longitude if longitude is not None else "")),
            "city": loc.get("city") or "",
            "country": loc.get("country_name") or loc.get("country") or "",
        },
        "astronomy": astro,
    })


# ---------------------------------------------------------------------------
# Astrology
# ---------------------------------------------------------------------------

def _parse_natal_chart(data: dict[str, Any]) -> NatalChart:
    return NatalChart(
        sun_sign=data.get("sun_sign") or "",
        moon_sign=data.get("moon_sign") or "",
        ascendant=data.get("ascendant") or "",
        planets=[
            Planet(
                name=p.get("name") or "",
                sign=p.get("sign") or "",
                house=p.get("house") or 0,
                degree=p.get("degree") or 0,
            )
            for p in data.get("planets") or []
            if isinstance(p, dict)
        ],
    )


def _parse_transits(data: dict[str, Any]) -> Transits:
    return Transits(
        major_aspects=[
            Aspect(
                planet1=a.get("planet1") or "",
                planet2=a.get("planet2") or "",
                aspect=a.get("aspect") or "",
                orb=a.get("orb") or 0,
                interpretation=a.get("interpretation") or "",
            )
            for a in data.get("major_aspects") or []
            if isinstance(a, dict)
        ],
        transit_interpretations=[str(t) for t in data.get("transit_interpretations") or []],
    )


def _parse_periods(items: Any) -> list[Period]:
    return [
        Period(
            start_date=p.get("start_date") or "",
            end_date=p.get("end_date") or "",
            description=p.get("description") or "",
            planetary_influence=p.get("planetary_influence") or "",
        )
        for p in items or []
        if isinstance(p, dict)
    ]


def _parse_personal_timing(data: dict[str, Any]) -> PersonalTiming:
    lunar = data.get("lunar_cycle_influence") or {}
    return PersonalTiming(
        overall_rating=data.get("overall_rating") or 5,
        favorable_periods=_parse_periods(data.get("favorable_periods")),
        caution_periods=_parse_periods(data.get("caution_periods")),
        recommended_approach=data.get("recommended_approach") or "",
        lunar_cycle_influence=LunarInfluence(
            phase=lunar.get("phase") or "",
            trading_advice=lunar.get("trading_advice") or "",
        ),
    )


ANALYSIS_TYPES = ("all", "personal_trading", "natal_chart", "transits")


class AstrologyClient:
    provider = "astrology"

    def __init__(
        self,
        api_key: Optional[str],
        host: Optional[str],
        timeout: float = 10.0,
        cache: Optional[TTLCache[AstrologicalInsight]] = None,
        clock: Clock = utcnow,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.host = host
        self._clock = clock
        self.cache: TTLCache[AstrologicalInsight] = cache if cache is not None else TTLCache(
            ttl=CACHE_TTL, clock=clock, max_entries=ASTROLOGY_CACHE_MAX_ENTRIES
        )
        self._http = http_client or httpx.Client(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.host)

    def cache_key(self, birth: BirthData, user_id: str, analysis_type: str) -> str:
        today = self._clock().date().isoformat()
        return (
            f"{user_id}:{birth.year}-{birth.month}-{birth.day}-{birth.hour}-{birth.minute}"
            f":{birth.city}:{analysis_type}:{today}"
        )

    def _post(self, path: str, body: dict[str, Any]) -> Optional[dict[str, Any]]:
        """One sub-analysis. Failures are logged and yield None; the others still run."""
        try:
            response = self._http.post(
                f"https://{self.host}{path}",
                headers={
                    "x-rapidapi-key": self.api_key,
                    "x-rapidapi-host": self.host,
                    "Content-Type": "application/json",
                },
                json=body,
            )
        except httpx.HTTPError as exc:
            logger.error("Astrology %s request failed: %s", path, exc)
            return None
        if response.status_code >= 400:
            logger.error("Astrology %s fetch failed: %s", path, response.status_code)
            return None
        try:
            data = response.json()
        except ValueError:
            logger.error("Astrology %s returned malformed JSON", path)
            return None
        return data if isinstance(data, dict) else None

    def fetch(
        self,
        birth_data: BirthData,
        user_id: str,
        analysis_type: str = "all",
        options: Optional[dict[str, Any]] = None,
    ) -> AstrologicalInsight:
        if not self.configured:
            raise ConfigurationError(
                "RAPIDAPI_ASTROLOGY_KEY",
                message="Astrology API credentials not configured.",
            )
        if analysis_type not in ANALYSIS_TYPES:
            raise InvalidInputError(
                f"Unknown analysis type {analysis_type!r}.", details={"allowed": list(ANALYSIS_TYPES)}
            )

        key = self.cache_key(birth_data, user_id, analysis_type)
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("Astrology cache hit for %s", key)
            return hit.value

        opts = options or {}
        language = opts.get("language", "en")
        subject = {"name": "User", "birth_data": birth_data.to_provider()}
        result = AstrologicalInsight()

        if analysis_type in ("all", "personal_trading"):
            data = self._post("/api/v3/insights/financial/personal-trading", {
                "subject": subject,
                "options": {
                    "trading_style": opts.get("trading_style", "day_trading"),
                    "analysis_period_days": opts.get("analysis_period_days", 7),
                    "include_lunar_cycles": opts.get("include_lunar_cycles", True),
                    "language": language,
                },
            })
            if data is not None:
                result.personal_trading = _parse_personal_timing(data)

        if analysis_type in ("all", "natal_chart"):
            data = self._post("/api/v3/natal-chart", {
                "subject": subject,
                "options": {"house_system": "placidus", "language": language},
            })
            if data is not None:
                result.natal_chart = _parse_natal_chart(data)

        if analysis_type in ("all", "transits"):
            data = self._post("/api/v3/transits", {
                "subject": subject,
                "transit_date": self._clock().date().isoformat(),
                "options": {"language": language},
            })
            if data is not None:
                result.transits = _parse_transits(data)

        if result.is_empty:
            raise UpstreamError(self.provider, "All astrology analyses failed.")

        entry = self.cache.put(key, result)
        result.cached_at = entry.cached_at.isoformat()
        return result

    def close(self) -> None:
        self._http.close()
