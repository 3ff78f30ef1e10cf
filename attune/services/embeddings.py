"""
Embedding client for the hosted feature-extraction inference API.

Model: BAAI/bge-small-en-v1.5 (384 dimensions) by default.

Rules:
- Input is trimmed; empty input is rejected before any network call.
- Inputs longer than MAX_INPUT_CHARS are truncated and suffixed with "...".
  The returned vector describes the truncated text.
- A vector whose length is not EMBEDDING_DIMENSIONS is a ProtocolError.
  It is never padded or cut to fit.

Public API
----------
EmbeddingClient.embed(text)                 -> EmbeddingResult
EmbeddingClient.embed_batch(texts, delay)   -> list[EmbeddingResult | AttuneException]
cosine_similarity(a, b)                     -> float
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Union

import httpx
import numpy as np

from attune.core.errors import (
    AttuneException,
    ConfigurationError,
    DimensionError,
    InvalidInputError,
    ProtocolError,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
)
from attune.models.embedding import EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)

PROVIDER = "embeddings"
MAX_INPUT_CHARS = 2000
DEFAULT_RETRY_AFTER = 30


@dataclass(frozen=True)
class EmbeddingResult:
    vector: list[float]
    model: str
    dimensions: int = EMBEDDING_DIMENSIONS


EmbeddingOutcome = Union[EmbeddingResult, AttuneException]


def prepare_input(text: str) -> str:
    """Trim and enforce the character budget. Raises InvalidInputError on empty text."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise InvalidInputError("Text cannot be empty.")
    if len(cleaned) > MAX_INPUT_CHARS:
        return cleaned[:MAX_INPUT_CHARS] + "..."
    return cleaned


def _retry_after(response: httpx.Response) -> int:
    header = response.headers.get("Retry-After")
    if header:
        try:
            return max(0, int(float(header)))
        except ValueError:
            pass
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("estimated_time") is not None:
        try:
            return max(1, int(float(body["estimated_time"])))
        except (TypeError, ValueError):
            pass
    return DEFAULT_RETRY_AFTER


def _extract_vector(payload: Any) -> list[float]:
    """Accept a flat vector or a batch-shaped [[...]] and return one float list."""
    if not isinstance(payload, list) or not payload:
        raise ProtocolError(
            "Invalid embedding format: expected a non-empty array.",
            details={"received_type": type(payload).__name__},
        )
    row = payload[0] if isinstance(payload[0], list) else payload
    try:
        vector = [float(x) for x in row]
    except (TypeError, ValueError) as exc:
        raise ProtocolError("Invalid embedding format: non-numeric component.") from exc
    if len(vector) != EMBEDDING_DIMENSIONS:
        raise ProtocolError(
            f"Embedding dimension mismatch: expected {EMBEDDING_DIMENSIONS}, got {len(vector)}.",
            details={"expected": EMBEDDING_DIMENSIONS, "received": len(vector)},
        )
    return vector


class EmbeddingClient:
    """Synchronous client; one HTTP call per `embed`."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/{model}/pipeline/feature-extraction"
        self._http = http_client or httpx.Client(timeout=timeout)
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def embed(self, text: str) -> EmbeddingResult:
        payload = prepare_input(text)
        if not self.api_key:
            raise ConfigurationError("HF_API_KEY")

        logger.debug(
            "Generating embedding model=%s length=%d truncated=%s",
            self.model, len(text), len(text.strip()) > MAX_INPUT_CHARS,
        )
        try:
            response = self._http.post(
                self.url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"inputs": payload},
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(PROVIDER, "Embedding request timed out.", raw=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(PROVIDER, "Failed to generate embedding.", raw=str(exc)) from exc

        if response.status_code == 429:
            raise RateLimitedError(PROVIDER, _retry_after(response))
        if response.status_code >= 400:
            raise UpstreamError(
                PROVIDER,
                "Failed to generate embedding.",
                raw=response.text,
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError(PROVIDER, "Malformed embedding response.", raw=response.text) from exc

        return EmbeddingResult(vector=_extract_vector(body), model=self.model)

    def embed_batch(self, texts: Sequence[str], delay: float = 0.1) -> list[EmbeddingOutcome]:
        """
        Embed `texts` one at a time, never concurrently.

        Each item's outcome is independent: a failure is returned in place of
        the vector and the batch continues. After a RateLimitedError the batch
        sleeps for its retry_after before the next request; otherwise it
        sleeps `delay` seconds between requests.
        """
        results: list[EmbeddingOutcome] = []
        for i, text in enumerate(texts):
            try:
                outcome: EmbeddingOutcome = self.embed(text)
            except AttuneException as exc:
                outcome = exc
            results.append(outcome)

            if i == len(texts) - 1:
                break
            if isinstance(outcome, RateLimitedError):
                logger.warning(
                    "Rate limited at %d/%d. Waiting %ss...", i + 1, len(texts), outcome.retry_after
                )
                self._sleep(outcome.retry_after)
            else:
                self._sleep(delay)
        return results

    def close(self) -> None:
        self._http.close()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between `a` and `b`; 0.0 when either has zero magnitude."""
    if len(a) != len(b):
        raise DimensionError(expected=len(a), received=len(b))
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0:
        return 0.0
    return float(np.dot(va, vb) / magnitude)
