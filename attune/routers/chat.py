"""
Chat router.

POST /chat — Reply to a message using the user's journal as retrieved context
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from attune.core.config import settings
from attune.core.deps import get_astrology_client, get_embedder, get_generator, get_vector_store
from attune.schemas.chat import ChatRequest, ChatResponse
from attune.services.attunement import resolve_user_id
from attune.services.chat import chat_reply
from attune.services.embeddings import EmbeddingClient
from attune.services.generator import GenerativeModelClient
from attune.services.providers import AstrologyClient
from attune.services.vector_store import VectorStore

router = APIRouter(tags=["chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Conversational reply with journal retrieval",
    responses={
        429: {"description": "Provider rate limit; see the Retry-After header."},
        500: {"description": "Missing credentials or provider failure."},
    },
)
def chat(
    payload: ChatRequest,
    generator: GenerativeModelClient = Depends(get_generator),
    embedder: EmbeddingClient = Depends(get_embedder),
    store: VectorStore = Depends(get_vector_store),
    astrology: AstrologyClient = Depends(get_astrology_client),
):
    """
    Embed the message, retrieve up to 5 journal entries with similarity ≥ 0.7,
    and answer with that history plus any supplied context objects.
    Prior turns go in `history`; retrieved entries come back in `sources`.
    """
    user_id = resolve_user_id(payload.user_id, settings.ALLOW_ANONYMOUS_USER, settings.DEFAULT_USER_ID)
    return chat_reply(
        payload,
        user_id=user_id,
        generator=generator,
        embedder=embedder,
        store=store,
        astrology=astrology,
    )
