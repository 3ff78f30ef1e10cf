"""
Context aggregator: turns the optional data sources into prompt sections.

Rules:
- One pure formatter per source. Formatters never raise on missing nested
  fields; a missing field renders as "Unknown".
- Every section has a fixed fallback string, so the prompt never has an
  empty section.
- Sections are assembled in a fixed order: recent logs, blueprint, vessel
  (health), cosmic, astrology.
- Any exception from an on-the-fly fetch or a formatter is caught here,
  logged, and replaced by that section's fallback. It never aborts the
  other sections.

Public API
----------
collect_recent_logs(embedder, store, user_id, now)   -> RecentLogs
aggregate_context(recent_logs, ...)                  -> AggregatedContext
format_recent_logs / format_blueprint / format_health / format_cosmic /
format_astrology / format_rag_results                -> str
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence, TypeVar

from attune.schemas.context import (
    AstrologicalInsight,
    BirthData,
    CosmicData,
    HealthMetrics,
    HumanDesignChart,
    Location,
)
from attune.services.vector_store import SemanticSearchResult, VectorStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN = "Unknown"

# ---------------------------------------------------------------------------
# Retrieval parameters
# ---------------------------------------------------------------------------

RECENT_LOGS_QUERY = (
    "Recent sovereign log entries from the last 7 days: "
    "urges, leaks, transmutations, energy levels, patterns"
)
RECENT_LOGS_THRESHOLD = 0.6
RECENT_LOGS_FETCH = 20
RECENT_LOGS_KEEP = 15
RECENT_LOGS_WINDOW = timedelta(days=7)

CHAT_THRESHOLD = 0.7
CHAT_LIMIT = 5

# ---------------------------------------------------------------------------
# Fallback strings
# ---------------------------------------------------------------------------

LOGS_NOT_CONFIGURED = "RECENT LOGS: Logging system not yet configured.\n"
LOGS_ERROR = "RECENT LOGS: Unable to retrieve logs due to technical error.\n"
LOGS_EMPTY = "RECENT LOGS: No entries from the last 7 days available.\n"
BLUEPRINT_FALLBACK = "BLUEPRINT: Not yet calculated. Focus on behavioral patterns from logs.\n"
HEALTH_FALLBACK = "VESSEL DATA: Not yet synced. Focus on logs and cosmic patterns.\n"
COSMIC_FALLBACK = "COSMIC STATE: Not yet fetched. Focus on internal patterns.\n"
ASTROLOGY_FALLBACK = "ASTROLOGICAL TRANSITS: Not yet configured. Focus on Blueprint + Vessel alignment.\n"


def _or_unknown(value: Any) -> str:
    if value is None or value == "":
        return UNKNOWN
    return str(value)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def result_timestamp(result: SemanticSearchResult) -> Optional[datetime]:
    """metadata.timestamp when present and parseable, else the row's creation time."""
    raw = result.metadata.get("timestamp")
    if isinstance(raw, str):
        try:
            return _as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            pass
    if result.created_at is not None:
        return _as_utc(result.created_at)
    return None


# ---------------------------------------------------------------------------
# Formatters (pure)
# ---------------------------------------------------------------------------

def format_recent_logs(results: Sequence[SemanticSearchResult]) -> str:
    lines = [f"RECENT LOGS (Last 7 Days - {len(results)} entries):"]
    for idx, result in enumerate(results, start=1):
        kind = result.metadata.get("type") or "unknown"
        ts = result_timestamp(result)
        when = ts.strftime("%Y-%m-%d %H:%M") if ts else UNKNOWN
        lines.append(f"[{idx}] {when} ({kind}):")
        lines.append(result.content)
        lines.append("")
    return "\n".join(lines) + "\n"


def format_blueprint(chart: HumanDesignChart) -> str:
    if chart.centers is None:
        defined = undefined = UNKNOWN
    else:
        defined = ", ".join(c for c, on in chart.centers.items() if on) or "None"
        undefined = ", ".join(c for c, on in chart.centers.items() if not on) or "None"
    gates = ", ".join(str(g) for g in chart.gates) if chart.gates else UNKNOWN

    return (
        "BLUEPRINT (Human Design):\n"
        f"- Type: {_or_unknown(chart.type)}\n"
        f"- Strategy: {_or_unknown(chart.strategy)}\n"
        f"- Authority: {_or_unknown(chart.authority)}\n"
        f"- Profile: {_or_unknown(chart.profile)}\n"
        f"- Defined Centers: {defined}\n"
        f"- Undefined Centers: {undefined}\n"
        f"- Active Gates: {gates}\n"
    )


def format_health(metrics: HealthMetrics) -> str:
    steps = f"{metrics.steps:,}" if metrics.steps is not None else UNKNOWN
    sleep = f"{metrics.sleep_hours:.1f} hours" if metrics.sleep_hours is not None else UNKNOWN
    asymmetry = (
        f"{metrics.walking_asymmetry:.1f}%" if metrics.walking_asymmetry is not None else "Not available"
    )
    last_sync = metrics.last_sync.strftime("%Y-%m-%d %H:%M") if metrics.last_sync else UNKNOWN

    return (
        "VESSEL DATA (HealthKit):\n"
        f"- Steps (today): {steps}\n"
        f"- Sleep (last night): {sleep}\n"
        f"- Walking Asymmetry: {asymmetry}\n"
        f"- Last Sync: {last_sync}\n"
    )


def format_cosmic(data: CosmicData) -> str:
    """Empty string when the payload has no astronomy block."""
    astro = data.astronomy
    if astro is None:
        return ""
    illumination = astro.moon_illumination_percentage
    lines = [
        "COSMIC STATE:",
        f"  • Date: {_or_unknown(astro.date)}",
        f"  • Current Time: {_or_unknown(astro.current_time)}",
        f"  • Sunrise: {_or_unknown(astro.sunrise)} | Sunset: {_or_unknown(astro.sunset)}",
        f"  • Day Length: {_or_unknown(astro.day_length)}",
        f"  • Moon Phase: {_or_unknown(astro.moon_phase)}",
        f"  • Lunar Illumination: {_or_unknown(illumination)}{'%' if illumination not in (None, '') else ''}",
    ]
    if astro.morning:
        lines.append(
            f"  • Morning Golden Hour: {_or_unknown(astro.morning.golden_hour_begin)}"
            f" - {_or_unknown(astro.morning.golden_hour_end)}"
        )
    if astro.evening:
        lines.append(
            f"  • Evening Golden Hour: {_or_unknown(astro.evening.golden_hour_begin)}"
            f" - {_or_unknown(astro.evening.golden_hour_end)}"
        )
    return "\n".join(lines) + "\n"


def format_astrology(data: AstrologicalInsight) -> str:
    """Empty string when the insight carries none of its three parts."""
    if data.is_empty:
        return ""
    lines = ["ASTROLOGICAL TRANSITS:"]

    natal = data.natal_chart
    if natal is not None:
        lines += [
            "  Natal Chart:",
            f"    • Sun: {_or_unknown(natal.sun_sign)}",
            f"    • Moon: {_or_unknown(natal.moon_sign)}",
            f"    • Ascendant: {_or_unknown(natal.ascendant)}",
        ]
        if natal.planets:
            lines.append("    • Planetary Positions:")
            for planet in natal.planets[:5]:
                lines.append(
                    f"      - {_or_unknown(planet.name)}: {_or_unknown(planet.sign)} "
                    f"(House {_or_unknown(planet.house)}, {_or_unknown(planet.degree)}°)"
                )

    transits = data.transits
    if transits is not None:
        if transits.major_aspects:
            lines.append("  Major Aspects:")
            for aspect in transits.major_aspects[:5]:
                lines.append(
                    f"    • {_or_unknown(aspect.planet1)} {_or_unknown(aspect.aspect)} "
                    f"{_or_unknown(aspect.planet2)} (orb: {_or_unknown(aspect.orb)}°)"
                )
                if aspect.interpretation:
                    lines.append(f"      → {aspect.interpretation}")
        if transits.transit_interpretations:
            lines.append("  Transit Interpretations:")
            for text in transits.transit_interpretations[:3]:
                lines.append(f"    • {text}")

    timing = data.personal_trading
    if timing is not None:
        lines += [
            "  Energy Timing Insights:",
            f"    • Overall Rating: {_or_unknown(timing.overall_rating)}/10",
            f"    • Approach: {_or_unknown(timing.recommended_approach)}",
        ]
        lunar = timing.lunar_cycle_influence
        if lunar is not None:
            lines.append(f"    • Lunar Phase: {_or_unknown(lunar.phase)}")
            lines.append(f"    • Advice: {_or_unknown(lunar.trading_advice)}")
        if timing.favorable_periods:
            lines.append("    • Favorable Periods:")
            for period in timing.favorable_periods:
                lines.append(
                    f"      - {_or_unknown(period.start_date)} to {_or_unknown(period.end_date)}: "
                    f"{_or_unknown(period.description)}"
                )
    return "\n".join(lines) + "\n"


def format_rag_results(results: Sequence[SemanticSearchResult]) -> str:
    """Conversational retrieval block, with relevance percentages."""
    if not results:
        return ""
    lines = ["RELEVANT USER HISTORY (from semantic search):"]
    for idx, result in enumerate(results, start=1):
        kind = result.metadata.get("type") or "unknown"
        ts = result_timestamp(result)
        when = ts.strftime("%Y-%m-%d") if ts else UNKNOWN
        lines.append(f"[{idx}] ({kind} - {when}) [Relevance: {result.similarity * 100:.1f}%]")
        lines.append(result.content)
        lines.append("")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Recent-log retrieval
# ---------------------------------------------------------------------------

@dataclass
class RecentLogs:
    results: list[SemanticSearchResult] = field(default_factory=list)
    fallback: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.results)


def collect_recent_logs(embedder, store: VectorStore, user_id: str, now: datetime) -> RecentLogs:
    """
    Embed the fixed "recent patterns" query, search broadly, then keep the 15
    most similar entries from the last 7 days. Never raises.
    """
    if embedder is None or not embedder.configured:
        return RecentLogs(fallback=LOGS_NOT_CONFIGURED)

    try:
        query = embedder.embed(RECENT_LOGS_QUERY)
        results = store.search_by_similarity(
            query.vector, RECENT_LOGS_THRESHOLD, RECENT_LOGS_FETCH, user_id=user_id
        )
    except Exception as exc:
        logger.warning("Recent-log retrieval failed for user=%s: %s", user_id, exc)
        return RecentLogs(fallback=LOGS_ERROR)

    cutoff = _as_utc(now) - RECENT_LOGS_WINDOW
    recent = [r for r in results if (ts := result_timestamp(r)) is not None and ts >= cutoff]
    recent = recent[:RECENT_LOGS_KEEP]
    logger.info("Found %d relevant logs (%d within 7 days)", len(results), len(recent))
    return RecentLogs(results=recent, fallback=None if recent else LOGS_EMPTY)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContextSection:
    name: str
    text: str
    available: bool


@dataclass
class AggregatedContext:
    sections: list[ContextSection]
    log_count: int = 0

    def section(self, name: str) -> ContextSection:
        return next(s for s in self.sections if s.name == name)

    @property
    def text(self) -> str:
        return "\n".join(s.text for s in self.sections)

    def provenance(self) -> dict[str, Any]:
        return {
            "log_count": self.log_count,
            "human_design_available": self.section("blueprint").available,
            "health_metrics_available": self.section("health").available,
            "cosmic_data_available": self.section("cosmic").available,
            "astrology_data_available": self.section("astrology").available,
        }


def _build_section(
    name: str,
    fallback: str,
    supplied: Optional[T],
    fetch: Optional[Callable[[], Optional[T]]],
    formatter: Callable[[T], str],
) -> ContextSection:
    data = supplied
    if data is None and fetch is not None:
        try:
            data = fetch()
        except Exception as exc:
            logger.warning("Fetching %s context failed: %s", name, exc)
            data = None
    if data is None:
        return ContextSection(name, fallback, available=False)

    try:
        text = formatter(data)
    except Exception:
        logger.exception("Formatting %s context failed", name)
        text = ""
    if not text:
        return ContextSection(name, fallback, available=False)
    return ContextSection(name, text, available=True)


def aggregate_context(
    recent_logs: RecentLogs,
    *,
    user_id: str,
    blueprint: Optional[HumanDesignChart] = None,
    health: Optional[HealthMetrics] = None,
    cosmic: Optional[CosmicData] = None,
    astrology: Optional[AstrologicalInsight] = None,
    location: Optional[Location] = None,
    birth_data: Optional[BirthData] = None,
    fetch_health: Optional[Callable[[Location], HealthMetrics]] = None,
    fetch_cosmos: Optional[Callable[[Location], CosmicData]] = None,
    fetch_astrology: Optional[Callable[[BirthData, str], AstrologicalInsight]] = None,
) -> AggregatedContext:
    """
    Build the five sections: logs, blueprint, health, cosmic, astrology.

    Supplied objects win; otherwise a fetcher runs when its precondition holds
    (a location for health and cosmic, birth data for astrology); otherwise the
    fallback is used.

    `fetch_health` has no server-side provider: health metrics arrive from the
    client, and AttunementService never passes a health fetcher.
    """
    if recent_logs.results:
        logs = ContextSection("logs", format_recent_logs(recent_logs.results), available=True)
    else:
        logs = ContextSection("logs", recent_logs.fallback or LOGS_EMPTY, available=False)

    health_fetch = (lambda: fetch_health(location)) if fetch_health and location else None
    cosmos_fetch = (lambda: fetch_cosmos(location)) if fetch_cosmos and location else None
    astrology_fetch = (
        (lambda: fetch_astrology(birth_data, user_id)) if fetch_astrology and birth_data else None
    )

    sections = [
        logs,
        _build_section("blueprint", BLUEPRINT_FALLBACK, blueprint, None, format_blueprint),
        _build_section("health", HEALTH_FALLBACK, health, health_fetch, format_health),
        _build_section("cosmic", COSMIC_FALLBACK, cosmic, cosmos_fetch, format_cosmic),
        _build_section("astrology", ASTROLOGY_FALLBACK, astrology, astrology_fetch, format_astrology),
    ]
    return AggregatedContext(sections=sections, log_count=recent_logs.count)
