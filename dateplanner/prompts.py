"""Builds the message list sent to the model for one turn.

The model APIs used here have no system role, so the persona is sent as
the first user entry followed by a fixed acknowledgement from the model.
Composition is a pure function of its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, Sequence

CONTROL_TOKEN = "[SHOW_WEATHER_CARD]"

Role = Literal["user", "model"]


@dataclass(frozen=True)
class TurnEntry:
    """One entry of a model request."""

    role: Role
    text: str


class HistoryItem(Protocol):
    """Anything replayable as context: a prior message and who sent it."""

    content: str
    is_user: bool


@dataclass(frozen=True)
class ModelTurnRequest:
    """Ordered entries for one model call.

    The first two entries are always the persona instruction and the
    acknowledgement; the last is always the new user message.
    """

    entries: tuple[TurnEntry, ...]

    @property
    def persona(self) -> str:
        return self.entries[0].text

    def to_gemini_contents(self) -> list[dict]:
        """Render as the Gemini generateContent ``contents`` array."""
        return [{"role": e.role, "parts": [{"text": e.text}]} for e in self.entries]


_PERSONA = {
    "en": (
        "You are a helpful and friendly AI restaurant/dating spot recommending assistant. "
        "Respond in English with clear, concise, and natural language. Don't ask too many "
        "questions about exact preferences and try to reply with general responses unless "
        "asked otherwise. Be conversational and engaging. Help with date/outing planning "
        "itinerary planning. Don't use any markdown formatting like **"
    ),
    "jp": (
        "あなたは親切でフレンドリーなレストラン・デートスポット推薦AIアシスタントです。"
        "明確で簡潔な自然な日本語で応答してください。具体的な好みについて多くの質問をせず、"
        "特に求められない限り一般的な回答を心がけてください。会話的で魅力的であるように。"
        "デート・お出かけの計画や旅程計画のサポートを行ってください。"
        "**のようなマークダウン形式は使用しないでください。"
    ),
}

_LOCATION_CLAUSE = {
    "en": " The user is located in {location}. You can reference their location when relevant.",
    "jp": " ユーザーは{location}にいます。関連する場合は、その場所を参照できます。",
}

_WEATHER_CLAUSE = {
    "en": (
        " Current weather data: {summary}. Use this information to answer weather-related "
        "questions naturally. IMPORTANT: If the user asks about weather, temperature, forecast, "
        "or any weather-related question, you MUST start your response with the exact marker "
        "\"{token}\" (without quotes) on its own line, followed by your natural language "
        "response. This marker tells the system to display a weather card with detailed "
        "information."
    ),
    "jp": (
        " 現在の天気データ: {summary}。天気に関する質問に自然に答えるために、この情報を使用してください。"
        "重要: ユーザーが天気、気温、予報、またはその他の天気関連の質問をした場合、応答の最初に"
        "正確なマーカー「{token}」（引用符なし）を単独の行に配置し、その後に自然な言語応答を続ける"
        "必要があります。このマーカーは、システムに詳細情報を含む天気カードを表示するように指示します。"
    ),
}

_ACKNOWLEDGEMENT = {
    "en": "Understood. I will respond in English.",
    "jp": "承知しました。日本語で応答します。",
}


def _lang(language: str) -> str:
    return language if language in _PERSONA else "en"


def build_persona(
    language: str,
    location_label: str | None = None,
    weather_summary: str | None = None,
) -> str:
    """Assemble the persona instruction with its optional context clauses."""
    lang = _lang(language)
    persona = _PERSONA[lang]
    if location_label:
        persona += _LOCATION_CLAUSE[lang].format(location=location_label)
    if weather_summary:
        persona += _WEATHER_CLAUSE[lang].format(summary=weather_summary, token=CONTROL_TOKEN)
    return persona


def compose(
    user_text: str,
    language: str,
    history: Sequence[HistoryItem],
    location_label: str | None = None,
    weather_summary: str | None = None,
) -> ModelTurnRequest:
    """Compose the model request for one turn.

    Args:
        user_text: The new user message, sent unmodified.
        language: "en" or "jp"; selects persona and acknowledgement.
        history: Prior messages in order, replayed role-for-role.
        location_label: Human-readable location, if resolved.
        weather_summary: Natural-language weather block, if fetched.

    Returns:
        ModelTurnRequest of persona, acknowledgement, history, user text.
    """
    entries = [
        TurnEntry("user", build_persona(language, location_label, weather_summary)),
        TurnEntry("model", _ACKNOWLEDGEMENT[_lang(language)]),
    ]
    entries.extend(
        TurnEntry("user" if item.is_user else "model", item.content) for item in history
    )
    entries.append(TurnEntry("user", user_text))
    return ModelTurnRequest(entries=tuple(entries))
