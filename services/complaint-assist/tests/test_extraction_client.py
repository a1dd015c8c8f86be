"""Tests for extraction client status mapping and retry behavior."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from extraction_client import ExtractionClient, ExtractionFailure, ExtractionServiceUnavailable
from models import ExtractionRequest, SourceHint


def _client(retry_attempts: int = 3) -> ExtractionClient:
    return ExtractionClient(
        base_url="http://fake-extractor:8000",
        timeout=5,
        connect_timeout=2,
        retry_attempts=retry_attempts,
        retry_delay=0.01,  # Fast retries for tests
        retry_backoff=1.0,  # No backoff for tests
    )


@pytest.fixture
def client():
    """Create an extraction client with fast retry settings for testing."""
    client = _client()
    yield client
    asyncio.run(client.aclose())


@pytest.fixture
def request_model() -> ExtractionRequest:
    return ExtractionRequest(raw_text="Hi, 2 units of X1 arrived broken. - Acme", source_hint="whatsapp")


class TestExtract:
    def test_successful_extraction(self, client, request_model, scenario_payload):
        mock_post = AsyncMock(return_value=httpx.Response(200, json=scenario_payload))

        with patch.object(client._client, "post", mock_post):
            result = asyncio.run(client.extract(request_model))

        assert result.extracted_data["customer"]["name"] == "Acme"
        assert result.confidence_for("items[0].qty") == 0.2
        mock_post.assert_awaited_once()

    def test_payload_shape(self, client, request_model, scenario_payload):
        mock_post = AsyncMock(return_value=httpx.Response(200, json=scenario_payload))

        with patch.object(client._client, "post", mock_post):
            asyncio.run(client.extract(request_model))

        args, kwargs = mock_post.call_args
        assert args[0] == "/ai/extract"
        payload = kwargs["json"]
        assert payload["source_hint"] == SourceHint.WHATSAPP.value
        assert payload["raw_text"].startswith("Hi, 2 units")
        assert payload["optional_context"]["currency_default"] == "INR"
        assert payload["optional_context"]["default_uom"] == "pcs"

    def test_503_triggers_retry_then_succeeds(self, client, request_model, scenario_payload):
        """503 should trigger retry; succeed on second attempt."""
        mock_post = AsyncMock(side_effect=[
            httpx.Response(503, json={"detail": "Model loading"}),
            httpx.Response(200, json=scenario_payload),
        ])

        with patch.object(client._client, "post", mock_post):
            result = asyncio.run(client.extract(request_model))

        assert result.extracted_data["items"][0]["sku"] == "X1"
        assert mock_post.await_count == 2

    def test_429_exhausts_retries(self, client, request_model):
        mock_post = AsyncMock(return_value=httpx.Response(429, json={"detail": "Rate limited"}))

        with patch.object(client._client, "post", mock_post):
            with pytest.raises(ExtractionServiceUnavailable, match="Rate limited"):
                asyncio.run(client.extract(request_model))

        assert mock_post.await_count == 3

    def test_single_attempt_by_default(self, request_model):
        """With one configured attempt a 503 surfaces immediately."""
        client = _client(retry_attempts=1)
        mock_post = AsyncMock(return_value=httpx.Response(503, json={"detail": "Model loading"}))

        try:
            with patch.object(client._client, "post", mock_post):
                with pytest.raises(ExtractionServiceUnavailable):
                    asyncio.run(client.extract(request_model))
        finally:
            asyncio.run(client.aclose())

        assert mock_post.await_count == 1

    def test_500_raises_failure_no_retry(self, client, request_model):
        mock_post = AsyncMock(return_value=httpx.Response(
            500, json={"error": {"code": "INTERNAL_ERROR", "message": "Failed to process AI extraction"}},
        ))

        with patch.object(client._client, "post", mock_post):
            with pytest.raises(ExtractionFailure, match="Failed to process AI extraction"):
                asyncio.run(client.extract(request_model))

        assert mock_post.await_count == 1

    def test_connection_error_triggers_retry(self, client, request_model, scenario_payload):
        mock_post = AsyncMock(side_effect=[
            httpx.ConnectError("Connection refused"),
            httpx.ConnectError("Connection refused"),
            httpx.Response(200, json=scenario_payload),
        ])

        with patch.object(client._client, "post", mock_post):
            result = asyncio.run(client.extract(request_model))

        assert result.extracted_data["customer"]["name"] == "Acme"
        assert mock_post.await_count == 3

    def test_read_timeout_is_unavailable(self, client, request_model):
        mock_post = AsyncMock(side_effect=httpx.ReadTimeout("Read timed out"))

        with patch.object(client._client, "post", mock_post):
            with pytest.raises(ExtractionServiceUnavailable, match="read timeout"):
                asyncio.run(client.extract(request_model))

    def test_non_json_body_is_failure(self, client, request_model):
        mock_post = AsyncMock(return_value=httpx.Response(200, text="<html>oops</html>"))

        with patch.object(client._client, "post", mock_post):
            with pytest.raises(ExtractionFailure, match="non-JSON"):
                asyncio.run(client.extract(request_model))

    def test_malformed_result_is_failure(self, client, request_model):
        """A bad score path in the response must not reach the review panel."""
        body = {"extracted_data": {}, "confidence_scores": {"items[x].sku": 0.5}}
        mock_post = AsyncMock(return_value=httpx.Response(200, json=body))

        with patch.object(client._client, "post", mock_post):
            with pytest.raises(ExtractionFailure, match="Malformed"):
                asyncio.run(client.extract(request_model))


class TestHealth:
    def test_health_success(self, client):
        mock_get = AsyncMock(return_value=httpx.Response(200, json={"status": "healthy"}))

        with patch.object(client._client, "get", mock_get):
            result = asyncio.run(client.health())

        assert result["status"] == "healthy"

    def test_health_failure_returns_error(self, client):
        mock_get = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with patch.object(client._client, "get", mock_get):
            result = asyncio.run(client.health())

        assert result["status"] == "unreachable"
        assert "error" in result
