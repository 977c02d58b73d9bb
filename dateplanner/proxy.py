"""Credential-holding proxy for the model and weather APIs.

Run with: uvicorn dateplanner.proxy:app (or python -m dateplanner.proxy)

Clients that set MODEL_PROXY_URL / WEATHER_PROXY_URL talk to this service
instead of the providers, so API keys never leave the server. The same
app serves every deployment target; only configuration differs.

Endpoints:
    POST /api/chat     {message, language, conversationHistory, userLocation, weatherData}
                       -> {response, showWeatherCard}
    POST /api/weather  {q, days} -> WeatherAPI.com forecast payload
    GET  /api/weather  ?q=&days= -> WeatherAPI.com forecast payload
"""

from __future__ import annotations

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from dateplanner import config
from dateplanner.chat import AnthropicTransport, GeminiTransport, ModelTransport, TurnContext
from dateplanner.errors import ConfigMissing, UpstreamError
from dateplanner.interpreter import ModelTurnResult, interpret
from dateplanner.logging_config import setup_logging
from dateplanner.prompts import compose
from dateplanner.weather import WeatherClient

logger = structlog.get_logger(__name__)


class HistoryEntry(BaseModel):
    """A replayed message as sent by the client."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    is_user: bool = Field(alias="isUser")


class ChatRequest(BaseModel):
    message: str | None = None
    language: str = "en"
    conversationHistory: list[HistoryEntry] = Field(default_factory=list)
    userLocation: str | None = None
    weatherData: str | None = None


class WeatherRequest(BaseModel):
    q: str | None = None
    days: int = 1


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": detail})


def _upstream_status(exc: UpstreamError) -> int:
    if exc.status_code and exc.status_code >= 400:
        return exc.status_code
    return 500


def build_server_transport() -> ModelTransport:
    """Direct transport with the server-side key. Never another proxy."""
    if config.MODEL_PROVIDER == "anthropic":
        return AnthropicTransport()
    return GeminiTransport()


def create_app(
    transport: ModelTransport | None = None,
    weather_client: WeatherClient | None = None,
) -> FastAPI:
    """Create the proxy application.

    Args:
        transport: Direct model transport; built from config when omitted.
        weather_client: Weather client; a direct (non-proxied) one is
            built when omitted.

    Returns:
        Configured FastAPI application.
    """
    model = transport or build_server_transport()
    weather = weather_client or WeatherClient(proxy_url="")

    app = FastAPI(
        title="Date Planner Proxy",
        description="Keeps model and weather API keys server-side.",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.PROXY_ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.post("/api/chat")
    async def chat(body: ChatRequest):
        if not body.message:
            return _error(400, "message required")

        context = TurnContext(
            message=body.message,
            language=body.language,
            history=body.conversationHistory,
            location_label=body.userLocation,
            weather_summary=body.weatherData,
        )
        request = compose(
            body.message,
            body.language,
            body.conversationHistory,
            body.userLocation,
            body.weatherData,
        )
        try:
            reply = await model.send(request, context)
        except ConfigMissing as exc:
            logger.error("Model key not configured", error=str(exc))
            return _error(500, str(exc))
        except UpstreamError as exc:
            logger.warning("Model call failed", error=str(exc), status_code=exc.status_code)
            return _error(_upstream_status(exc), str(exc))

        result = reply if isinstance(reply, ModelTurnResult) else interpret(reply)
        return {"response": result.response_text, "showWeatherCard": result.show_weather_card}

    async def _weather(q: str | None, days: int):
        if not q:
            return _error(400, "q (query) required")
        try:
            return await weather.fetch_payload(q, days)
        except ConfigMissing as exc:
            logger.error("Weather key not configured", error=str(exc))
            return _error(500, str(exc))
        except UpstreamError as exc:
            logger.warning("Weather call failed", error=str(exc), status_code=exc.status_code)
            return _error(_upstream_status(exc), str(exc))

    @app.post("/api/weather")
    async def weather_post(body: WeatherRequest):
        return await _weather(body.q, body.days)

    @app.get("/api/weather")
    async def weather_get(q: str | None = None, days: int = 1):
        return await _weather(q, days)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=config.PROXY_HOST, port=config.PROXY_PORT)
