"""
Conversational reply with retrieval-augmented context.

The user's message is embedded and matched against their journal
(threshold 0.7, top 5). Retrieval is optional: when embeddings are not
configured or the lookup fails the reply is generated without it.
The model call itself is mandatory and its errors propagate.
"""
from __future__ import annotations

import logging
from typing import Optional

from attune.schemas.chat import ChatRequest, ChatResponse, ChatSource
from attune.services.context import (
    CHAT_LIMIT,
    CHAT_THRESHOLD,
    RecentLogs,
    aggregate_context,
    format_rag_results,
    result_timestamp,
)
from attune.services.generator import GenerativeModelClient, Turn
from attune.services.prompts import build_chat_system_prompt
from attune.services.vector_store import SemanticSearchResult, VectorStore

logger = logging.getLogger(__name__)


def retrieve_relevant_logs(
    embedder, store: Optional[VectorStore], message: str, user_id: str
) -> list[SemanticSearchResult]:
    if embedder is None or store is None or not embedder.configured:
        return []
    try:
        query = embedder.embed(message)
        results = store.search_by_similarity(query.vector, CHAT_THRESHOLD, CHAT_LIMIT, user_id=user_id)
    except Exception as exc:
        logger.warning("Chat retrieval failed for user=%s: %s", user_id, exc)
        return []
    logger.info("Chat retrieval found %d relevant logs", len(results))
    return results


def chat_reply(
    request: ChatRequest,
    user_id: str,
    generator: GenerativeModelClient,
    embedder,
    store: Optional[VectorStore],
    astrology=None,
) -> ChatResponse:
    generator.ensure_configured()

    results = retrieve_relevant_logs(embedder, store, request.message, user_id)
    context = aggregate_context(
        RecentLogs(),
        user_id=user_id,
        blueprint=request.human_design_chart,
        health=request.health_metrics,
        cosmic=request.cosmic_data,
        astrology=request.astrology_data,
        birth_data=request.birth_data,
        fetch_astrology=(
            (lambda birth, uid: astrology.fetch(birth, uid))
            if astrology is not None and astrology.configured
            else None
        ),
    )
    # the 7-day digest is replaced by message-specific retrieval
    context_text = "\n".join(s.text for s in context.sections if s.name != "logs")
    system = build_chat_system_prompt(context_text, format_rag_results(results))

    history = [Turn(role=t.role, content=t.content) for t in request.history]
    reply = generator.generate(request.message, history=history, system=system)

    sources = []
    for result in results:
        ts = result_timestamp(result)
        sources.append(ChatSource(
            content=result.content,
            similarity=result.similarity,
            type=result.metadata.get("type"),
            timestamp=ts.isoformat() if ts else None,
        ))
    return ChatResponse(reply=reply, sources=sources)
