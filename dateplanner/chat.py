"""Model transports for the date-planning assistant.

Three interchangeable transports are provided:
- GeminiTransport calls the Gemini generateContent API with a client-held key.
- AnthropicTransport calls Claude through the Anthropic SDK with a client-held key.
- ProxyTransport posts the turn to a proxy that holds the key server-side.

Direct transports return the raw model text for local interpretation; the
proxy returns an already interpreted ModelTurnResult. Transports hold
configuration only and open a fresh HTTP client per call, so one instance
can be shared for the lifetime of the host process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

import anthropic
import httpx
import structlog

from dateplanner import config
from dateplanner.errors import ConfigMissing, ParseError, UpstreamError
from dateplanner.http_client import request_json
from dateplanner.interpreter import ModelTurnResult, interpret
from dateplanner.prompts import HistoryItem, ModelTurnRequest

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TurnContext:
    """The inputs of one turn, as a proxy needs them.

    Attributes:
        message: The new user message.
        language: "en" or "jp".
        history: Prior messages in order.
        location_label: Human-readable location, if resolved.
        weather_summary: Natural-language weather block, if fetched.
    """

    message: str
    language: str
    history: Sequence[HistoryItem] = ()
    location_label: str | None = None
    weather_summary: str | None = None


class ModelTransport(Protocol):
    """Sends one composed turn to the model.

    Returns raw text when the caller must interpret it, or a
    ModelTurnResult when interpretation already happened upstream.
    """

    async def send(
        self, request: ModelTurnRequest, context: TurnContext
    ) -> str | ModelTurnResult: ...


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters for the model call."""

    temperature: float = config.CHAT_TEMPERATURE
    top_k: int = config.CHAT_TOP_K
    top_p: float = config.CHAT_TOP_P
    max_output_tokens: int = config.CHAT_MAX_TOKENS

    def to_gemini(self) -> dict:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }


def extract_gemini_text(data: dict) -> str:
    """Join the text parts of the first Gemini candidate.

    Raises:
        UpstreamError: If the body carries an error object.
        ParseError: If there is no candidate to read or its parts are malformed.
    """
    error = data.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise UpstreamError(message or "Gemini API returned an error.")

    candidates = data.get("candidates") or []
    if not candidates:
        raise ParseError("No response generated from Gemini.")
    try:
        parts = candidates[0]["content"]["parts"]
        texts = [part.get("text", "") for part in parts]
    except (KeyError, TypeError, AttributeError) as exc:
        raise ParseError("Unexpected response format from Gemini.") from exc
    if not all(isinstance(text, str) for text in texts):
        raise ParseError("Unexpected response format from Gemini.")
    return "".join(texts)


class GeminiTransport:
    """Direct Gemini transport.

    Args:
        api_key: Gemini key; read lazily from config when omitted.
        model: Gemini model name.
        generation: Sampling parameters.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = config.GEMINI_MODEL,
        generation: GenerationConfig | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.generation = generation or GenerationConfig()

    @property
    def api_key(self) -> str:
        if self._api_key is None:
            return config.get_gemini_api_key()
        return self._api_key

    async def send(self, request: ModelTurnRequest, context: TurnContext) -> str:
        api_key = self.api_key
        if not api_key:
            raise ConfigMissing(
                "Gemini API key is not configured. "
                "Set GEMINI_API_KEY or MODEL_PROXY_URL."
            )

        body = {
            "contents": request.to_gemini_contents(),
            "generationConfig": self.generation.to_gemini(),
        }
        logger.info("Calling Gemini", model=self.model, entries=len(request.entries))
        async with httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT * 4) as client:
            data = await request_json(
                client,
                "POST",
                f"{config.GEMINI_API_BASE_URL}/models/{self.model}:generateContent",
                provider="Gemini API",
                headers={"x-goog-api-key": api_key},
                json=body,
            )
        return extract_gemini_text(data)


class AnthropicTransport:
    """Direct Claude transport through the Anthropic SDK.

    The persona pair is sent as ordinary messages, same as for Gemini,
    so both providers see an identical conversation.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = config.ANTHROPIC_MODEL,
        generation: GenerationConfig | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.generation = generation or GenerationConfig()

    @property
    def api_key(self) -> str:
        if self._api_key is None:
            return config.get_anthropic_api_key()
        return self._api_key

    async def send(self, request: ModelTurnRequest, context: TurnContext) -> str:
        api_key = self.api_key
        if not api_key:
            raise ConfigMissing(
                "ANTHROPIC_API_KEY is not set. "
                "Please set it in your environment or set MODEL_PROXY_URL."
            )

        messages = [
            {"role": "user" if e.role == "user" else "assistant", "content": e.text}
            for e in request.entries
        ]
        logger.info("Calling Anthropic", model=self.model, entries=len(messages))
        try:
            async with anthropic.AsyncAnthropic(api_key=api_key) as client:
                response = await client.messages.create(
                    model=self.model,
                    max_tokens=self.generation.max_output_tokens,
                    temperature=min(self.generation.temperature, 1.0),
                    messages=messages,
                )
        except anthropic.APIStatusError as exc:
            raise UpstreamError(f"Claude request failed: {exc}", status_code=exc.status_code) from exc
        except anthropic.APIError as exc:
            raise UpstreamError(f"Claude request failed: {exc}") from exc

        return "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )


class ProxyTransport:
    """Sends the raw turn inputs to the credential-holding proxy.

    The proxy composes and calls the model server-side. Its text is
    interpreted again here, and the card flag is the OR of the proxy flag
    and any token still present.
    """

    def __init__(self, url: str = config.MODEL_PROXY_URL) -> None:
        self.url = url

    async def send(self, request: ModelTurnRequest, context: TurnContext) -> ModelTurnResult:
        if not self.url:
            raise ConfigMissing("MODEL_PROXY_URL is not configured.")

        body = {
            "message": context.message,
            "language": context.language,
            "conversationHistory": [
                {"content": item.content, "isUser": item.is_user} for item in context.history
            ],
            "userLocation": context.location_label,
            "weatherData": context.weather_summary,
        }
        logger.info("Calling model proxy", url=self.url)
        async with httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT * 4) as client:
            data = await request_json(client, "POST", self.url, provider="model proxy", json=body)

        if not isinstance(data.get("response"), str):
            raise ParseError("Model proxy response has no text.")
        result = interpret(data["response"])
        return ModelTurnResult(
            response_text=result.response_text,
            show_weather_card=bool(data.get("showWeatherCard")) or result.show_weather_card,
        )


def build_transport() -> ModelTransport:
    """Pick the transport from configuration.

    A configured model proxy always wins, so client-side keys are never
    read when one is set.
    """
    if config.MODEL_PROXY_URL:
        return ProxyTransport(config.MODEL_PROXY_URL)
    if config.MODEL_PROVIDER == "anthropic":
        return AnthropicTransport()
    return GeminiTransport()
