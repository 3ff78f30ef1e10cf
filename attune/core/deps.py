"""
FastAPI dependency providers for the external collaborators.

HTTP clients and caches are process-wide singletons; the vector store is
built per request because the SQL backend needs the request's session.
Tests replace any of these through `app.dependency_overrides`.
"""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session
from supabase import Client, create_client

from attune.core.config import settings
from attune.core.errors import ConfigurationError
from attune.db.base import get_db
from attune.services.attunement import AttunementService
from attune.services.cache import SynthesisCache
from attune.services.embeddings import EmbeddingClient
from attune.services.generator import GenerativeModelClient
from attune.services.providers import AstrologyClient, CosmosClient
from attune.services.vector_store import SqlVectorStore, SupabaseVectorStore, VectorStore


@lru_cache
def get_embedder() -> EmbeddingClient:
    return EmbeddingClient(
        api_key=settings.HF_API_KEY,
        model=settings.HF_EMBED_MODEL,
        base_url=settings.HF_INFERENCE_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


@lru_cache
def get_generator() -> GenerativeModelClient:
    return GenerativeModelClient(
        api_key=settings.GOOGLE_API_KEY,
        model=settings.GEMINI_MODEL,
        base_url=settings.GEMINI_BASE_URL,
        timeout=settings.MODEL_TIMEOUT_SECONDS,
    )


@lru_cache
def get_cosmos_client() -> CosmosClient:
    return CosmosClient(
        api_key=settings.IPGEOLOCATION_API_KEY,
        base_url=settings.IPGEOLOCATION_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


@lru_cache
def get_astrology_client() -> AstrologyClient:
    return AstrologyClient(
        api_key=settings.RAPIDAPI_ASTROLOGY_KEY,
        host=settings.RAPIDAPI_ASTROLOGY_HOST,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


@lru_cache
def get_attunement_cache() -> SynthesisCache:
    return SynthesisCache(ttl=timedelta(hours=settings.ATTUNEMENT_CACHE_TTL_HOURS))


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise ConfigurationError(
            "SUPABASE_SERVICE_ROLE_KEY",
            message="VECTOR_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.",
        )
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache
def _supabase_store() -> SupabaseVectorStore:
    return SupabaseVectorStore(
        get_supabase(),
        table=settings.SUPABASE_EMBEDDINGS_TABLE,
        match_function=settings.SUPABASE_MATCH_FUNCTION,
    )


def get_vector_store(db: Session = Depends(get_db)) -> VectorStore:
    if settings.VECTOR_BACKEND == "supabase":
        return _supabase_store()
    return SqlVectorStore(db)


def get_attunement_service(
    store: VectorStore = Depends(get_vector_store),
    generator: GenerativeModelClient = Depends(get_generator),
    embedder: EmbeddingClient = Depends(get_embedder),
    cache: SynthesisCache = Depends(get_attunement_cache),
    cosmos: CosmosClient = Depends(get_cosmos_client),
    astrology: AstrologyClient = Depends(get_astrology_client),
) -> AttunementService:
    return AttunementService(
        generator=generator,
        embedder=embedder,
        store=store,
        cache=cache,
        cosmos=cosmos,
        astrology=astrology,
        allow_anonymous=settings.ALLOW_ANONYMOUS_USER,
        default_user_id=settings.DEFAULT_USER_ID,
    )
