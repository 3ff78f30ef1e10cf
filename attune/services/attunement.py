"""
Daily attunement synthesis.

Pipeline (linear):
  CACHE_CHECK → EMBED_QUERY → SEARCH_LOGS → AGGREGATE_CONTEXT → CALL_MODEL
  → PERSIST → CACHE_WRITE → RETURN_FRESH

Rules:
- A missing model credential fails the request before any other call.
- CACHE_CHECK consults the in-process cache, then `daily_attunements`.
  A hit is terminal and is returned with cached=True.
- Log retrieval and the optional sources never fail the request; they
  degrade to fallback text (see attune.services.context).
- The model call is mandatory: its errors propagate.
- PERSIST is best-effort. A uniqueness conflict on (user_id, date) returns
  the row that won; any other database error is logged and the fresh
  result is still returned.
- The cache is written only with a complete result.

Public API
----------
AttunementService.synthesize(db, request) -> AttunementResult
AttunementService.status()                -> AttunementStatusResponse
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from attune.core.errors import InvalidInputError
from attune.models.attunement import DailyAttunement
from attune.schemas.attunement import (
    AttunementRequest,
    AttunementResponse,
    AttunementStatusResponse,
    BasedOn,
    CacheStats,
)
from attune.schemas.context import AstrologicalInsight, BirthData, CosmicData, Location
from attune.services.cache import Clock, SynthesisCache, utcnow
from attune.services.context import aggregate_context, collect_recent_logs
from attune.services.generator import GenerativeModelClient, parse_attunement
from attune.services.prompts import ATTUNEMENT_SYSTEM_PROMPT, build_attunement_prompt
from attune.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class AttunementResult:
    date: date
    insightful_question: str
    synthesized_answer: str
    generated_at: datetime
    based_on: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    cached: bool = False
    cached_at: Optional[datetime] = None

    def to_response(self) -> AttunementResponse:
        return AttunementResponse(
            id=self.id,
            date=self.date,
            insightful_question=self.insightful_question,
            synthesized_answer=self.synthesized_answer,
            generated_at=self.generated_at,
            based_on=BasedOn(**self.based_on),
            cached=self.cached,
            cached_at=self.cached_at,
        )


def resolve_user_id(user_id: Optional[str], allow_anonymous: bool, default_user_id: str) -> str:
    if user_id:
        return user_id
    if allow_anonymous:
        return default_user_id
    raise InvalidInputError(
        "userId is required.",
        details={"field": "userId", "hint": "Set ALLOW_ANONYMOUS_USER for single-tenant use."},
    )


# ---------------------------------------------------------------------------
# Durable storage helpers
# ---------------------------------------------------------------------------

def _jload_map(text: Optional[str]) -> dict[str, Any]:
    if not text:
        return {}
    try:
        result = json.loads(text)
        return result if isinstance(result, dict) else {}
    except (ValueError, TypeError):
        return {}


def _row_to_result(row: DailyAttunement) -> AttunementResult:
    return AttunementResult(
        id=row.id,
        date=row.date,
        insightful_question=row.insightful_question,
        synthesized_answer=row.synthesized_answer,
        generated_at=row.generated_at,
        based_on=_jload_map(row.based_on),
    )


def load_attunement(db: Session, user_id: str, day: date) -> Optional[DailyAttunement]:
    return (
        db.query(DailyAttunement)
        .filter(DailyAttunement.user_id == user_id, DailyAttunement.date == day)
        .first()
    )


def save_attunement(db: Session, user_id: str, result: AttunementResult) -> AttunementResult:
    """Insert; on a (user_id, date) conflict return the existing row instead."""
    row = DailyAttunement(
        user_id=user_id,
        date=result.date,
        insightful_question=result.insightful_question,
        synthesized_answer=result.synthesized_answer,
        based_on=json.dumps(result.based_on),
        generated_at=result.generated_at,
    )
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
        return replace(result, id=row.id)
    except IntegrityError:
        db.rollback()
        existing = load_attunement(db, user_id, result.date)
        if existing is None:
            logger.error("Attunement insert conflicted but no row found for user=%s", user_id)
            return result
        logger.info("Attunement for user=%s on %s already stored; returning it", user_id, result.date)
        return _row_to_result(existing)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to store attunement for user=%s: %s", user_id, exc)
        return result


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AttunementService:
    def __init__(
        self,
        generator: GenerativeModelClient,
        embedder,
        store: VectorStore,
        cache: SynthesisCache,
        cosmos=None,
        astrology=None,
        clock: Clock = utcnow,
        allow_anonymous: bool = False,
        default_user_id: str = "default",
    ):
        self.generator = generator
        self.embedder = embedder
        self.store = store
        self.cache = cache
        self.cosmos = cosmos
        self.astrology = astrology
        self.clock = clock
        self.allow_anonymous = allow_anonymous
        self.default_user_id = default_user_id

    # -- optional fetchers -------------------------------------------------

    def _fetch_cosmos(self, location: Location) -> CosmicData:
        return self.cosmos.fetch(latitude=location.latitude, longitude=location.longitude)

    def _fetch_astrology(self, birth_data: BirthData, user_id: str) -> AstrologicalInsight:
        return self.astrology.fetch(birth_data, user_id)

    # -- cache check -------------------------------------------------------

    def _cached(self, db: Session, user_id: str, day: date) -> Optional[AttunementResult]:
        hit = self.cache.get(user_id, day)
        if hit is not None:
            logger.info("Returning cached attunement for user=%s day=%s", user_id, day)
            return replace(hit.record, cached=True, cached_at=hit.cached_at)

        try:
            row = load_attunement(db, user_id, day)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Attunement lookup failed for user=%s: %s", user_id, exc)
            return None
        if row is None:
            return None

        warmed = self.cache.put(user_id, day, _row_to_result(row))
        logger.info("Returning stored attunement for user=%s day=%s", user_id, day)
        return replace(warmed.record, cached=True, cached_at=warmed.cached_at)

    # -- pipeline ----------------------------------------------------------

    def synthesize(self, db: Session, request: AttunementRequest) -> AttunementResult:
        self.generator.ensure_configured()
        user_id = resolve_user_id(request.user_id, self.allow_anonymous, self.default_user_id)
        now = self.clock()
        today = now.date()

        cached = self._cached(db, user_id, today)
        if cached is not None:
            return cached

        logger.info("Synthesizing attunement for user=%s day=%s", user_id, today)
        recent = collect_recent_logs(self.embedder, self.store, user_id, now)
        context = aggregate_context(
            recent,
            user_id=user_id,
            blueprint=request.human_design_chart,
            health=request.health_metrics,
            cosmic=request.cosmic_data,
            astrology=request.astrology_data,
            location=request.location,
            birth_data=request.birth_data,
            fetch_cosmos=self._fetch_cosmos if self.cosmos and self.cosmos.configured else None,
            fetch_astrology=(
                self._fetch_astrology if self.astrology and self.astrology.configured else None
            ),
        )

        text = self.generator.generate(
            build_attunement_prompt(context.text), system=ATTUNEMENT_SYSTEM_PROMPT
        )
        parsed = parse_attunement(text)

        result = AttunementResult(
            date=today,
            insightful_question=parsed.insightful_question,
            synthesized_answer=parsed.synthesized_answer,
            generated_at=now,
            based_on=context.provenance(),
        )
        result = save_attunement(db, user_id, result)
        self.cache.put(user_id, today, result)
        logger.info("Attunement ready for user=%s (logs=%d)", user_id, context.log_count)
        return result

    def status(self) -> AttunementStatusResponse:
        return AttunementStatusResponse(
            description="Daily Attunement Engine: synthesizes blueprint, logs, health and cosmic data.",
            configured={
                "generativeModel": self.generator.configured,
                "embeddings": bool(self.embedder and self.embedder.configured),
                "cosmos": bool(self.cosmos and self.cosmos.configured),
                "astrology": bool(self.astrology and self.astrology.configured),
            },
            cache_stats=CacheStats(
                entries=len(self.cache),
                ttl_hours=int(self.cache.ttl.total_seconds() // 3600),
            ),
        )
