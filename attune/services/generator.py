"""
Generative-language client (Gemini `generateContent` over REST) and the
parser for the attunement answer.

The model is asked for a JSON object but nothing enforces that, so
`parse_attunement` accepts a fenced ```json block, a bare {...} object, or
falls back to forwarding the raw text as the answer.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

import httpx

from attune.core.errors import (
    ConfigurationError,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

PROVIDER = "generative-language"
DEFAULT_QUESTION = "What pattern is asking for your attention today?"

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_BARE_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class Turn:
    role: str  # "user" | "model"
    content: str


class GenerativeModelClient:
    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        timeout: float = 60.0,
        temperature: float = 0.8,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self.temperature = temperature
        self._http = http_client or httpx.Client(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("GOOGLE_API_KEY")

    def generate(
        self,
        prompt: str,
        history: Sequence[Turn] = (),
        system: Optional[str] = None,
    ) -> str:
        """Send prior turns plus `prompt` as the final user turn; return the reply text."""
        self.ensure_configured()

        contents = [
            {"role": turn.role, "parts": [{"text": turn.content}]} for turn in history
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        payload: dict = {
            "contents": contents,
            "generationConfig": {"temperature": self.temperature},
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        try:
            response = self._http.post(
                self.url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=payload,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(PROVIDER, "Model call timed out.", raw=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(PROVIDER, "Model call failed.", raw=str(exc)) from exc

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "30")
            raise RateLimitedError(PROVIDER, int(retry_after) if retry_after.isdigit() else 30)
        if response.status_code >= 400:
            raise UpstreamError(
                PROVIDER, "Model call failed.", raw=response.text, status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(PROVIDER, "Malformed model response.", raw=response.text) from exc

        candidates = data.get("candidates") or []
        if not candidates:
            raise UpstreamError(PROVIDER, "Model response has no candidates.", raw=json.dumps(data)[:500])
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise UpstreamError(PROVIDER, "Model returned empty content.", raw=json.dumps(data)[:500])
        return text

    def close(self) -> None:
        self._http.close()


# ---------------------------------------------------------------------------
# Answer parsing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParsedAttunement:
    insightful_question: str
    synthesized_answer: str
    structured: bool


def _json_candidates(text: str):
    for match in _FENCED_JSON_RE.finditer(text):
        yield match.group(1)
    match = _BARE_OBJECT_RE.search(_FENCED_JSON_RE.sub("", text))
    if match:
        yield match.group(0)
    yield text


def parse_attunement(text: str) -> ParsedAttunement:
    """
    Extract {insightfulQuestion, synthesizedAnswer}; forward raw text when that fails.

    Fenced blocks are tried first, then a bare {...} object outside any fence,
    then the whole reply.
    """
    for candidate in _json_candidates(text):
        try:
            data = json.loads(candidate)
        except (ValueError, TypeError):
            continue
        if not isinstance(data, dict):
            continue
        question = data.get("insightfulQuestion")
        answer = data.get("synthesizedAnswer")
        if isinstance(question, str) and question.strip() and isinstance(answer, str) and answer.strip():
            return ParsedAttunement(question.strip(), answer.strip(), structured=True)

    logger.warning("Model output was not a valid attunement object; forwarding raw text")
    return ParsedAttunement(DEFAULT_QUESTION, text.strip(), structured=False)
