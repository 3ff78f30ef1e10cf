"""
Collaborator proxy router.

POST /cosmos     — Astronomy data for a location (cached 24h)
POST /astrology  — Natal chart, transits and timing insights (cached per day)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from attune.core.config import settings
from attune.core.deps import get_astrology_client, get_cosmos_client
from attune.schemas.context import AstrologicalInsight, CosmicData
from attune.schemas.providers import AstrologyRequest, CosmosRequest
from attune.services.attunement import resolve_user_id
from attune.services.providers import AstrologyClient, CosmosClient

router = APIRouter(tags=["providers"])


@router.post(
    "/cosmos",
    response_model=CosmicData,
    summary="Fetch cosmic (astronomy) data",
    responses={500: {"description": "IPGEOLOCATION_API_KEY missing or provider failure."}},
)
def fetch_cosmos(payload: CosmosRequest, client: CosmosClient = Depends(get_cosmos_client)):
    """Send `latitude`/`longitude` or a `location` name, plus an optional `date`."""
    return client.fetch(
        latitude=payload.latitude,
        longitude=payload.longitude,
        location=payload.location,
        day=payload.date,
    )


@router.post(
    "/astrology",
    response_model=AstrologicalInsight,
    response_model_by_alias=True,
    summary="Fetch astrological insight",
    responses={500: {"description": "Astrology credentials missing or every sub-analysis failed."}},
)
def fetch_astrology(payload: AstrologyRequest, client: AstrologyClient = Depends(get_astrology_client)):
    """
    Runs the personal-timing, natal-chart and transits analyses selected by
    `analysisType`. A failing sub-analysis leaves its part empty.
    """
    user_id = resolve_user_id(payload.user_id, settings.ALLOW_ANONYMOUS_USER, settings.DEFAULT_USER_ID)
    return client.fetch(
        payload.birth_data,
        user_id,
        analysis_type=payload.analysis_type,
        options=payload.options,
    )
