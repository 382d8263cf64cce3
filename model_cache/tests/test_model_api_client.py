"""
Unit tests for the model API client.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from prometheus_client import CollectorRegistry

from model_cache.adapters.model_api_client import ModelApiClient
from shared.config import get_config
from shared.errors import DeserializationError, FetchError, ReadBackDeniedError
from shared.metrics import MetricsCollector
from shared.test_helpers import TestDataFactory


URL = "http://localhost:3000/api/model/post/delete"


def _response(status_code, payload, method="DELETE", url=URL):
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return httpx.Response(status_code=status_code, content=content, request=httpx.Request(method, url))


class TestModelApiClient:
    """Test cases for ModelApiClient."""

    @pytest.fixture
    def config(self):
        """Create client configuration."""
        return get_config(base_url="http://localhost:3000")

    @pytest.fixture
    def api_client(self, config):
        """Create ModelApiClient instance."""
        return ModelApiClient(config)

    def test_url_for(self, api_client):
        """Test operation URLs use the lower-cased model name."""
        assert api_client.url_for("Post", "findMany") == "http://localhost:3000/api/model/post/findMany"

    @pytest.mark.asyncio
    async def test_fetch_success(self, api_client):
        """Test the envelope's data is returned with rich values restored."""
        payload = {
            "data": {"id": 1, "createdAt": "2024-01-01T00:00:00.000Z"},
            "meta": {"serialization": {"values": {"createdAt": ["Date"]}}},
        }

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(200, payload, method="GET")
            )

            result = await api_client.fetch("http://localhost:3000/api/model/post/findUnique")

            assert result["id"] == 1
            assert result["createdAt"] == datetime(2024, 1, 1, tzinfo=timezone.utc)
            mock_client.assert_called_once_with(timeout=10.0)

    @pytest.mark.asyncio
    async def test_read_back_denied_resolves_empty(self, api_client):
        """Test a denied read-back on a 200 response resolves to None."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(200, TestDataFactory.create_read_back_denied_error())
            )

            result = await api_client.fetch(URL, method="DELETE")

            assert result is None

    @pytest.mark.asyncio
    async def test_read_back_denied_non_success_status(self, api_client):
        """Test a denied read-back on a 403 response resolves to None."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(403, TestDataFactory.create_read_back_denied_error())
            )

            assert await api_client.fetch(URL, method="DELETE") is None

    @pytest.mark.asyncio
    async def test_read_back_denied_surfaced(self, api_client):
        """Test disabling read-back checking surfaces the denial."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(403, TestDataFactory.create_read_back_denied_error())
            )

            with pytest.raises(ReadBackDeniedError) as exc_info:
                await api_client.fetch(URL, method="DELETE", check_read_back=False)

            assert exc_info.value.status == 403
            assert exc_info.value.info["code"] == "P2004"
            assert isinstance(exc_info.value, FetchError)

    @pytest.mark.asyncio
    async def test_other_errors_raise(self, api_client):
        """Test other failures carry status and error payload."""
        payload = {"error": {"prisma": True, "code": "P2025", "message": "Record not found"}}

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(404, payload)
            )

            with pytest.raises(FetchError) as exc_info:
                await api_client.fetch(URL, method="DELETE")

            assert exc_info.value.status == 404
            assert exc_info.value.info == payload["error"]
            assert exc_info.value.message == "An error occurred while fetching the data."

    @pytest.mark.asyncio
    async def test_unparseable_error_body(self, api_client):
        """Test failures with a non-JSON body still raise FetchError."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(502, "Bad Gateway")
            )

            with pytest.raises(FetchError) as exc_info:
                await api_client.fetch(URL, method="DELETE")

            assert exc_info.value.status == 502
            assert exc_info.value.info is None

    @pytest.mark.asyncio
    async def test_deserialization_failure(self, api_client):
        """Test malformed success bodies are logged and re-raised."""
        with patch('httpx.AsyncClient') as mock_client, \
                patch.object(api_client, 'logger') as mock_logger:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(200, "{not json", method="GET")
            )

            with pytest.raises(DeserializationError) as exc_info:
                await api_client.fetch("http://localhost:3000/api/model/post/findMany")

            assert isinstance(exc_info.value.__cause__, ValueError)
            assert exc_info.value.details["payload"] == "{not json"
            mock_logger.error.assert_called_once()
            assert mock_logger.error.call_args.kwargs["payload"] == "{not json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("meta", [
        {"serialization": {"values": {"x": ["Date"]}}},
        {"serialization": {"values": {"x": ["Decimal"]}}},
        {"serialization": {"values": 5}},
        {"serialization": "Date"},
    ])
    async def test_bad_serialization_metadata(self, api_client, meta):
        """Test metadata that does not fit the data is a deserialization failure."""
        body = json.dumps({"data": {"x": 1}, "meta": meta})

        with patch('httpx.AsyncClient') as mock_client, \
                patch.object(api_client, 'logger') as mock_logger:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(200, body, method="GET")
            )

            with pytest.raises(DeserializationError) as exc_info:
                await api_client.fetch("http://localhost:3000/api/model/post/findMany")

            assert exc_info.value.details["payload"] == body
            assert mock_logger.error.call_args.kwargs["payload"] == body

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, api_client):
        """Test transport errors are re-raised."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                side_effect=httpx.ConnectError("Connection failed")
            )

            with pytest.raises(httpx.ConnectError):
                await api_client.fetch(URL, method="DELETE")

    @pytest.mark.asyncio
    async def test_injected_client_and_metrics(self, config):
        """Test an injected httpx client is used and requests are measured."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.headers.get("content-type"), request.content))
            return httpx.Response(200, json={"data": {"id": 7, "title": "x"}})

        metrics = MetricsCollector(registry=CollectorRegistry())
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            api_client = ModelApiClient(config, http_client, metrics=metrics)

            result = await api_client.fetch(
                "http://localhost:3000/api/model/post/create",
                method="POST",
                body='{"data": {"title": "x"}}',
            )

        assert result == {"id": 7, "title": "x"}
        assert seen == [("POST", "application/json", b'{"data": {"title": "x"}}')]
        assert metrics.sample_value("fetch_requests_total", method="POST", status_code="200") == 1.0
