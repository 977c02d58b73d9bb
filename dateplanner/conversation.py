"""Conversation orchestration: one user turn end to end.

For each turn the Conversation resolves the user's location (once per
session), fetches weather for the day the user mentions, composes the
model request from the full prior history, sends it through the model
transport, interprets the reply, and appends the result to the
transcript. Location and weather failures only remove context; a model
failure becomes a localized apology plus a notification.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import structlog

from dateplanner import config
from dateplanner.chat import ModelTransport, TurnContext
from dateplanner.errors import DatePlannerError, WeatherUnavailable
from dateplanner.interpreter import ModelTurnResult, interpret
from dateplanner.location import LocationResolver, LocationSnapshot, format_location
from dateplanner.prompts import compose
from dateplanner.weather import (
    WeatherCard,
    WeatherClient,
    WeatherSnapshot,
    extract_card,
    format_weather_summary,
    parse_date_offset,
)

logger = structlog.get_logger(__name__)

LANGUAGES = ("en", "jp")

_APOLOGY = {
    "en": "Sorry, I encountered an error. Please check your API key configuration and try again.",
    "jp": "申し訳ありません。エラーが発生しました。APIキーの設定を確認して、もう一度お試しください。",
}

_ERROR_TITLE = {"en": "Error", "jp": "エラー"}

# Receives (title, detail) for user-facing error notifications.
Notifier = Callable[[str, str], None]


@dataclass(frozen=True)
class Message:
    """One transcript entry.

    Attributes:
        content: Display text.
        is_user: True for user messages, False for assistant replies.
        weather_card: Card data, only on replies that asked for a card
            in a turn where weather was fetched.
    """

    content: str
    is_user: bool
    weather_card: WeatherCard | None = None


def _log_notification(title: str, detail: str) -> None:
    logger.error("Turn failed", title=title, detail=detail)


class Conversation:
    """Drives turns against shared session state.

    There is no overlap control: the caller must not start a turn while
    another is pending.

    Args:
        transport: Model transport (direct or proxy).
        location_resolver: Resolver used once per session.
        weather_client: Weather fetcher.
        language: "en" or "jp".
        notify: Called with (title, detail) when a turn fails.
    """

    def __init__(
        self,
        transport: ModelTransport,
        location_resolver: LocationResolver | None = None,
        weather_client: WeatherClient | None = None,
        language: str = config.DEFAULT_LANGUAGE,
        notify: Notifier | None = None,
    ) -> None:
        self.transport = transport
        self.location_resolver = location_resolver or LocationResolver()
        self.weather_client = weather_client or WeatherClient()
        self.language = language
        self.notify = notify or _log_notification
        self.messages: list[Message] = []
        self.location: LocationSnapshot | None = None

    @property
    def language(self) -> str:
        return self._language

    @language.setter
    def language(self, value: str) -> None:
        if value not in LANGUAGES:
            raise ValueError(f"Unsupported language: {value!r}. Use one of {LANGUAGES}.")
        self._language = value

    async def ensure_location(self) -> LocationSnapshot:
        """Resolve the session location on first use and reuse it afterwards."""
        if self.location is None:
            self.location = await self.location_resolver.resolve()
            logger.info(
                "Session location resolved",
                source=self.location.source.value,
                city=self.location.city,
            )
        return self.location

    async def _fetch_weather(
        self, location: LocationSnapshot, day_offset: int
    ) -> WeatherSnapshot | None:
        try:
            return await self.weather_client.fetch(location, day_offset + 1)
        except WeatherUnavailable as exc:
            logger.warning("Continuing without weather", error=str(exc))
            return None

    def _apologize(self, language: str, detail: str) -> Message:
        message = Message(content=_APOLOGY[language], is_user=False)
        self.messages.append(message)
        self.notify(_ERROR_TITLE[language], detail)
        return message

    async def submit_turn(self, user_text: str) -> Message:
        """Run one turn and return the assistant reply.

        The user message and the reply are both appended to
        ``messages``. The reply is always produced: when the model call
        fails it is a localized apology and ``notify`` receives the
        error detail.

        Args:
            user_text: The user's message.

        Returns:
            The assistant Message appended for this turn.
        """
        language = self.language
        history = list(self.messages)
        self.messages.append(Message(content=user_text, is_user=True))

        location = await self.ensure_location()
        location_label = None
        weather = None
        day_offset = 0
        if location.is_known:
            location_label = format_location(location)
            day_offset = parse_date_offset(user_text, language)
            weather = await self._fetch_weather(location, day_offset)

        weather_summary = format_weather_summary(weather, language) if weather else None
        request = compose(user_text, language, history, location_label, weather_summary)
        context = TurnContext(
            message=user_text,
            language=language,
            history=history,
            location_label=location_label,
            weather_summary=weather_summary,
        )

        try:
            reply = await self.transport.send(request, context)
            result = reply if isinstance(reply, ModelTurnResult) else interpret(reply)
        except DatePlannerError as exc:
            logger.error("Model call failed", error=str(exc), error_type=type(exc).__name__)
            return self._apologize(language, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error during model call")
            return self._apologize(language, str(exc) or type(exc).__name__)

        card = None
        if result.show_weather_card and weather is not None:
            card = extract_card(weather, day_offset)
        elif result.show_weather_card:
            logger.info("Model asked for a weather card but no weather was fetched")

        message = Message(content=result.response_text, is_user=False, weather_card=card)
        self.messages.append(message)
        return message
