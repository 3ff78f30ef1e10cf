"""
Custom exception hierarchy for the attunement service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Mandatory-path failures (missing credentials, model call failures) reach the
client through these handlers. Optional context sources catch their own
failures and degrade to fallback text instead.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class AttuneException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str]:
        return {}

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ConfigurationError(AttuneException):
    """A required credential or setting is missing. Never retried."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, message: str | None = None):
        super().__init__(
            message=message or f"{setting} not configured.",
            details={"setting": setting},
        )


class InvalidInputError(AttuneException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_INPUT"


class RateLimitedError(AttuneException):
    """Upstream provider asked us to back off for `retry_after` seconds."""
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"

    def __init__(self, provider: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            message=f"{provider} rate limit reached. Retry after {retry_after}s.",
            details={"provider": provider, "retry_after": retry_after},
        )

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class UpstreamError(AttuneException):
    """Opaque provider failure; `details.raw` carries the provider's diagnostic text."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "UPSTREAM_ERROR"

    def __init__(self, provider: str, message: str, raw: str | None = None, status_code: int | None = None):
        details: dict[str, Any] = {"provider": provider}
        if raw:
            details["raw"] = raw[:500]
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message=message, details=details)


class UpstreamTimeoutError(UpstreamError):
    code = "UPSTREAM_TIMEOUT"


class ProtocolError(AttuneException):
    """Provider answered 2xx but the body does not honour the contract."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "PROTOCOL_ERROR"


class DimensionError(AttuneException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "DIMENSION_MISMATCH"

    def __init__(self, expected: int, received: int):
        super().__init__(
            message=f"Invalid embedding dimension: {received}, expected {expected}.",
            details={"expected": expected, "received": received},
        )


class VectorStoreError(AttuneException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "VECTOR_STORE_ERROR"


class LogEntryNotFoundError(AttuneException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "LOG_ENTRY_NOT_FOUND"

    def __init__(self, log_id: int):
        super().__init__(
            message=f"Log entry {log_id} not found.",
            details={"id": log_id},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def attune_exception_handler(request: Request, exc: AttuneException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=exc.headers or None,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
