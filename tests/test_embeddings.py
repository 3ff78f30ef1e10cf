"""
Tests for the embedding client: input preparation, provider error mapping,
rate-limit propagation in batches, and cosine similarity.
"""
import json

import httpx
import pytest

from attune.core.errors import (
    ConfigurationError,
    DimensionError,
    InvalidInputError,
    ProtocolError,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
)
from attune.services.embeddings import (
    MAX_INPUT_CHARS,
    EmbeddingClient,
    cosine_similarity,
    prepare_input,
)

VECTOR = [0.01 * i for i in range(384)]


def make_client(handler, api_key="hf-test", sleeps=None):
    return EmbeddingClient(
        api_key=api_key,
        model="BAAI/bge-small-en-v1.5",
        base_url="https://hf.test/models",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=(sleeps.append if sleeps is not None else lambda s: None),
    )


def ok(request):
    return httpx.Response(200, json=VECTOR)


# ---------------------------------------------------------------------------
# Input preparation
# ---------------------------------------------------------------------------

class TestPrepareInput:
    def test_trims_whitespace(self):
        assert prepare_input("  hello  ") == "hello"

    def test_empty_rejected(self):
        with pytest.raises(InvalidInputError):
            prepare_input("   ")

    def test_long_text_truncated_with_ellipsis(self):
        out = prepare_input("x" * 5000)
        assert len(out) == MAX_INPUT_CHARS + 3
        assert out.endswith("...")

    def test_exact_limit_untouched(self):
        text = "y" * MAX_INPUT_CHARS
        assert prepare_input(text) == text


# ---------------------------------------------------------------------------
# embed
# ---------------------------------------------------------------------------

class TestEmbed:
    def test_flat_vector(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=VECTOR)

        result = make_client(handler).embed("  I felt the urge at 3pm  ")
        assert result.vector == VECTOR
        assert result.dimensions == 384
        assert result.model == "BAAI/bge-small-en-v1.5"
        assert seen["url"].endswith("/BAAI/bge-small-en-v1.5/pipeline/feature-extraction")
        assert seen["auth"] == "Bearer hf-test"
        assert seen["body"] == {"inputs": "I felt the urge at 3pm"}

    def test_nested_vector_uses_first_row(self):
        result = make_client(lambda r: httpx.Response(200, json=[VECTOR])).embed("hi")
        assert result.vector == VECTOR

    def test_sends_truncated_text(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content)["inputs"])
            return httpx.Response(200, json=VECTOR)

        make_client(handler).embed("z" * 3000)
        assert len(bodies[0]) == MAX_INPUT_CHARS + 3

    def test_missing_key_is_configuration_error(self):
        calls = []
        client = make_client(lambda r: calls.append(r) or ok(r), api_key=None)
        with pytest.raises(ConfigurationError) as exc:
            client.embed("text")
        assert exc.value.details["setting"] == "HF_API_KEY"
        assert calls == []

    def test_empty_input_checked_before_network(self):
        calls = []
        client = make_client(lambda r: calls.append(r) or ok(r))
        with pytest.raises(InvalidInputError):
            client.embed("\n\t ")
        assert calls == []

    def test_wrong_dimension_is_protocol_error(self):
        client = make_client(lambda r: httpx.Response(200, json=[0.1] * 768))
        with pytest.raises(ProtocolError) as exc:
            client.embed("text")
        assert exc.value.details == {"expected": 384, "received": 768}

    def test_non_list_body_is_protocol_error(self):
        client = make_client(lambda r: httpx.Response(200, json={"error": "weird"}))
        with pytest.raises(ProtocolError):
            client.embed("text")

    def test_rate_limit_uses_retry_after_header(self):
        client = make_client(lambda r: httpx.Response(429, headers={"Retry-After": "30"}, text="slow down"))
        with pytest.raises(RateLimitedError) as exc:
            client.embed("text")
        assert exc.value.retry_after == 30
        assert exc.value.headers == {"Retry-After": "30"}

    def test_rate_limit_uses_estimated_time(self):
        client = make_client(lambda r: httpx.Response(429, json={"estimated_time": 12.4}))
        with pytest.raises(RateLimitedError) as exc:
            client.embed("text")
        assert exc.value.retry_after == 12

    def test_rate_limit_default(self):
        client = make_client(lambda r: httpx.Response(429, text="busy"))
        with pytest.raises(RateLimitedError) as exc:
            client.embed("text")
        assert exc.value.retry_after == 30

    def test_upstream_error_carries_raw(self):
        client = make_client(lambda r: httpx.Response(503, text="Model is loading"))
        with pytest.raises(UpstreamError) as exc:
            client.embed("text")
        assert exc.value.details["raw"] == "Model is loading"
        assert exc.value.details["status_code"] == 503

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamTimeoutError) as exc:
            make_client(handler).embed("text")
        assert exc.value.code == "UPSTREAM_TIMEOUT"


# ---------------------------------------------------------------------------
# embed_batch
# ---------------------------------------------------------------------------

class TestEmbedBatch:
    def test_waits_retry_after_before_next_request(self):
        sleeps = []
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "30"}),
            httpx.Response(200, json=VECTOR),
        ])
        client = make_client(lambda r: next(responses), sleeps=sleeps)

        results = client.embed_batch(["first", "second"])
        assert isinstance(results[0], RateLimitedError)
        assert results[0].retry_after == 30
        assert results[1].vector == VECTOR
        assert sleeps == [30]

    def test_items_are_independent(self):
        client = make_client(ok, sleeps=[])
        results = client.embed_batch(["a", "   ", "c"])
        assert results[0].vector == VECTOR
        assert isinstance(results[1], InvalidInputError)
        assert results[2].vector == VECTOR

    def test_delay_between_items_only(self):
        sleeps = []
        make_client(ok, sleeps=sleeps).embed_batch(["a", "b", "c"], delay=0.25)
        assert sleeps == [0.25, 0.25]

    def test_requests_are_sequential(self):
        order = []

        def handler(request):
            order.append(json.loads(request.content)["inputs"])
            return httpx.Response(200, json=VECTOR)

        make_client(handler, sleeps=[]).embed_batch(["one", "two", "three"])
        assert order == ["one", "two", "three"]


# ---------------------------------------------------------------------------
# cosine_similarity
# ---------------------------------------------------------------------------

class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_zero_magnitude(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_length_mismatch(self):
        with pytest.raises(DimensionError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
