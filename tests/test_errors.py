"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from attune.core.errors import (
    ConfigurationError,
    DimensionError,
    LogEntryNotFoundError,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_configuration_error(self):
        err = ConfigurationError("GOOGLE_API_KEY")
        assert err.http_status == 500
        assert err.code == "CONFIGURATION_ERROR"
        assert "GOOGLE_API_KEY" in err.message
        assert err.to_dict()["details"] == {"setting": "GOOGLE_API_KEY"}

    def test_rate_limited_error(self):
        err = RateLimitedError("embeddings", retry_after=30)
        assert err.http_status == 429
        assert err.code == "RATE_LIMITED"
        assert err.retry_after == 30
        assert err.headers == {"Retry-After": "30"}
        assert err.to_dict()["details"]["retry_after"] == 30

    def test_upstream_error_truncates_raw(self):
        err = UpstreamError("embeddings", "failed", raw="x" * 2000, status_code=503)
        assert err.http_status == 500
        assert len(err.details["raw"]) == 500
        assert err.details["status_code"] == 503
        assert err.headers == {}

    def test_timeout_is_upstream(self):
        err = UpstreamTimeoutError("generative-language", "timed out")
        assert isinstance(err, UpstreamError)
        assert err.code == "UPSTREAM_TIMEOUT"

    def test_dimension_error(self):
        err = DimensionError(expected=384, received=768)
        assert err.http_status == 422
        assert err.code == "DIMENSION_MISMATCH"
        assert "768" in err.message
        assert err.details == {"expected": 384, "received": 768}

    def test_not_found(self):
        err = LogEntryNotFoundError(log_id=42)
        assert err.http_status == 404
        assert err.to_dict() == {
            "code": "LOG_ENTRY_NOT_FOUND",
            "message": "Log entry 42 not found.",
            "details": {"id": 42},
        }


# ---------------------------------------------------------------------------
# Integration: error envelope over HTTP
# ---------------------------------------------------------------------------

class TestErrorResponses:
    def test_validation_error_envelope(self, client):
        r = client.post("/embedding", json={"text": "   "})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["errors"][0]["field"] == "text"

    def test_missing_field(self, client):
        r = client.post("/logs", json={"category": "urge", "content": "x"})
        assert r.status_code == 422
        fields = [e["field"] for e in r.json()["details"]["errors"]]
        assert "userId" in fields

    def test_not_found_envelope(self, client):
        r = client.get("/logs/987654")
        assert r.status_code == 404
        assert r.json()["code"] == "LOG_ENTRY_NOT_FOUND"

    def test_rate_limit_sets_retry_after(self, client, embedder):
        embedder.error = RateLimitedError("embeddings", retry_after=30)
        r = client.post("/embedding", json={"text": "hello"})
        assert r.status_code == 429
        assert r.headers["Retry-After"] == "30"
        assert r.json()["code"] == "RATE_LIMITED"

    def test_configuration_error_is_500(self, client, generator, user_id):
        generator.configured = False
        r = client.post("/attunement", json={"userId": user_id})
        assert r.status_code == 500
        assert r.json()["code"] == "CONFIGURATION_ERROR"

    def test_dimension_error_over_http(self, client):
        r = client.post("/vector/search", json={"embedding": [0.1, 0.2, 0.3]})
        assert r.status_code == 422
        assert r.json()["code"] == "DIMENSION_MISMATCH"
