"""
Daily attunement router.

POST /attunement  — Synthesize (or return the cached) attunement for today
GET  /attunement  — Configuration and cache status
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from attune.core.deps import get_attunement_service
from attune.db.base import get_db
from attune.schemas.common import ErrorResponse
from attune.schemas.attunement import AttunementRequest, AttunementResponse, AttunementStatusResponse
from attune.services.attunement import AttunementService

router = APIRouter(prefix="/attunement", tags=["attunement"])


@router.post(
    "",
    response_model=AttunementResponse,
    summary="Synthesize today's attunement",
    responses={
        200: {"description": "Fresh (`cached: false`) or cached (`cached: true`) attunement."},
        422: {"model": ErrorResponse, "description": "Validation error, or missing userId."},
        429: {"model": ErrorResponse, "description": "Provider rate limit; see the Retry-After header."},
        500: {"model": ErrorResponse, "description": "Missing credentials or provider failure."},
    },
)
def synthesize_attunement(
    payload: AttunementRequest,
    db: Session = Depends(get_db),
    service: AttunementService = Depends(get_attunement_service),
):
    """
    Combine the user's recent journal entries with any supplied blueprint,
    health, cosmic and astrology data into one question/answer pair for today.

    - One attunement per user per day. Repeat calls return the stored result
      with `cached: true` and `cachedAt`.
    - Every optional source may be omitted. Missing sources are reported as
      `false` in `basedOn` and never cause an error.
    - `location` and `birthData` let the server fetch cosmic and astrology
      data itself when those providers are configured.
    """
    return service.synthesize(db, payload).to_response()


@router.get(
    "",
    response_model=AttunementStatusResponse,
    summary="Attunement engine status",
)
def attunement_status(service: AttunementService = Depends(get_attunement_service)):
    """Report which providers are configured and how many attunements are cached."""
    return service.status()
