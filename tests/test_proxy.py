"""Tests for the credential-holding proxy service."""

import importlib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from dateplanner.errors import ConfigMissing, UpstreamError
from dateplanner.prompts import CONTROL_TOKEN
from dateplanner.proxy import create_app


class FakeTransport:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def send(self, request, context):
        self.calls.append((request, context))
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture()
def weather_client(forecast_payload):
    client = MagicMock()
    client.fetch_payload = AsyncMock(return_value=forecast_payload)
    return client


def _client(transport, weather_client):
    return TestClient(create_app(transport=transport, weather_client=weather_client))


class TestChatEndpoint:
    """Test POST /api/chat."""

    def test_interprets_model_reply(self, weather_client):
        transport = FakeTransport(reply=f"{CONTROL_TOKEN}\n**Sunny** tomorrow.")
        client = _client(transport, weather_client)

        resp = client.post(
            "/api/chat",
            json={
                "message": "Weather tomorrow?",
                "language": "en",
                "conversationHistory": [
                    {"content": "Hi", "isUser": True},
                    {"content": "Hello!", "isUser": False},
                ],
                "userLocation": "Tokyo, Tokyo, Japan",
                "weatherData": "Sunny",
            },
        )

        assert resp.status_code == 200
        assert resp.json() == {"response": "Sunny tomorrow.", "showWeatherCard": True}

        request, context = transport.calls[0]
        assert [e.role for e in request.entries] == ["user", "model", "user", "model", "user"]
        assert "The user is located in Tokyo, Tokyo, Japan." in request.persona
        assert "Current weather data: Sunny." in request.persona
        assert context.history[0].is_user is True

    def test_defaults_for_optional_fields(self, weather_client):
        transport = FakeTransport(reply="Hello there.")
        client = _client(transport, weather_client)

        resp = client.post("/api/chat", json={"message": "Hi"})

        assert resp.json() == {"response": "Hello there.", "showWeatherCard": False}
        request, context = transport.calls[0]
        assert len(request.entries) == 3
        assert context.language == "en"

    def test_missing_message_is_400(self, weather_client):
        transport = FakeTransport(reply="unused")
        client = _client(transport, weather_client)

        resp = client.post("/api/chat", json={"language": "en"})

        assert resp.status_code == 400
        assert resp.json() == {"error": "message required"}
        assert transport.calls == []

    def test_missing_key_is_500(self, weather_client):
        client = _client(
            FakeTransport(error=ConfigMissing("Gemini API key is not configured.")),
            weather_client,
        )

        resp = client.post("/api/chat", json={"message": "Hi"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Gemini API key is not configured."}

    def test_upstream_status_is_forwarded(self, weather_client):
        client = _client(
            FakeTransport(error=UpstreamError("Resource exhausted", status_code=429)),
            weather_client,
        )

        resp = client.post("/api/chat", json={"message": "Hi"})

        assert resp.status_code == 429
        assert resp.json() == {"error": "Resource exhausted"}

    def test_upstream_without_status_is_500(self, weather_client):
        client = _client(FakeTransport(error=UpstreamError("timed out")), weather_client)

        resp = client.post("/api/chat", json={"message": "Hi"})

        assert resp.status_code == 500


class TestWeatherEndpoint:
    """Test /api/weather in both methods."""

    def test_post_returns_payload(self, weather_client, forecast_payload):
        client = _client(FakeTransport(), weather_client)

        resp = client.post("/api/weather", json={"q": "35.6762,139.6503", "days": 2})

        assert resp.status_code == 200
        assert resp.json() == forecast_payload
        weather_client.fetch_payload.assert_awaited_once_with("35.6762,139.6503", 2)

    def test_get_with_query_params(self, weather_client):
        client = _client(FakeTransport(), weather_client)

        resp = client.get("/api/weather", params={"q": "Tokyo"})

        assert resp.status_code == 200
        weather_client.fetch_payload.assert_awaited_once_with("Tokyo", 1)

    def test_missing_query_is_400(self, weather_client):
        client = _client(FakeTransport(), weather_client)

        resp = client.post("/api/weather", json={"days": 1})

        assert resp.status_code == 400
        assert resp.json() == {"error": "q (query) required"}
        weather_client.fetch_payload.assert_not_awaited()

    def test_missing_key_is_500(self, weather_client):
        weather_client.fetch_payload.side_effect = ConfigMissing("Weather API key is not configured.")
        client = _client(FakeTransport(), weather_client)

        resp = client.get("/api/weather", params={"q": "Tokyo"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Weather API key is not configured."}

    def test_upstream_error_status_is_forwarded(self, weather_client):
        weather_client.fetch_payload.side_effect = UpstreamError(
            "No matching location found.", status_code=400
        )
        client = _client(FakeTransport(), weather_client)

        resp = client.post("/api/weather", json={"q": "Atlantis"})

        assert resp.status_code == 400
        assert resp.json() == {"error": "No matching location found."}


class TestHealth:
    def test_health(self, weather_client):
        resp = _client(FakeTransport(), weather_client).get("/health")
        assert resp.json() == {"status": "ok"}


class TestModuleApp:
    def test_import_configures_logging(self):
        import dateplanner.proxy as proxy

        with patch("dateplanner.logging_config.setup_logging") as mock_setup:
            importlib.reload(proxy)

        mock_setup.assert_called_once_with()
        assert proxy.app.title == "Date Planner Proxy"
