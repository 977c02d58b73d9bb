"""Streamlit chat host for the date-planning assistant.

Run with: streamlit run dateplanner/app.py

Device coordinates can be supplied as query parameters (?lat=35.68&lon=139.69);
without them the session location falls back to IP geolocation.
"""

from __future__ import annotations

import asyncio

import streamlit as st

from dateplanner import config
from dateplanner.chat import ModelTransport, build_transport
from dateplanner.conversation import Conversation, Message
from dateplanner.location import LocationResolver, StaticDeviceLocator
from dateplanner.logging_config import setup_logging
from dateplanner.weather import WeatherCard, WeatherClient


_TRANSLATIONS = {
    "en": {
        "title": "BEAN JAM BOT",
        "subtitle": (
            "Ask beanie whether you should plan a restaurant hopping session "
            "or a date or just restaurant recommendations"
        ),
        "placeholder": "Type your message...",
        "thinking": "Thinking...",
        "language": "Language",
        "feels_like": "Feels like",
        "precipitation": "Precipitation",
        "humidity": "Humidity",
        "wind": "Wind",
    },
    "jp": {
        "title": "ビーンジャムボット",
        "subtitle": "ビーニーに、レストランホッピング、デート、またはおすすめレストランについて聞いてみよう！",
        "placeholder": "メッセージを入力...",
        "thinking": "考え中...",
        "language": "言語",
        "feels_like": "体感",
        "precipitation": "降水確率",
        "humidity": "湿度",
        "wind": "風速",
    },
}


@st.cache_resource
def _get_transport() -> ModelTransport:
    """One configured transport for the lifetime of the Streamlit process."""
    setup_logging()
    return build_transport()


def _device_locator() -> StaticDeviceLocator | None:
    """Build a device locator from ?lat=&lon= query parameters, if present."""
    try:
        lat = float(st.query_params["lat"])
        lon = float(st.query_params["lon"])
    except (KeyError, ValueError):
        return None
    return StaticDeviceLocator(lat, lon)


def _notify(title: str, detail: str) -> None:
    st.toast(f"**{title}**: {detail}", icon="⚠️")


def _get_conversation() -> Conversation:
    if "conversation" not in st.session_state:
        st.session_state.conversation = Conversation(
            transport=_get_transport(),
            location_resolver=LocationResolver(device_locator=_device_locator()),
            weather_client=WeatherClient(),
            language=config.DEFAULT_LANGUAGE,
            notify=_notify,
        )
    return st.session_state.conversation


def _render_weather_card(card: WeatherCard, t: dict[str, str]) -> None:
    with st.container(border=True):
        header, icon = st.columns([4, 1])
        header.markdown(f"**{card.location}**  \n{card.condition}")
        if card.icon:
            icon.image(card.icon if card.icon.startswith("http") else f"https:{card.icon}", width=48)
        c1, c2, c3, c4 = st.columns(4)
        c1.metric(f"{card.temperature:.0f}°C", f"{t['feels_like']} {card.feels_like:.0f}°C", delta_color="off")
        c2.metric(t["precipitation"], f"{card.precipitation}%")
        c3.metric(t["humidity"], f"{card.humidity}%")
        c4.metric(t["wind"], f"{card.wind_speed:.0f} km/h")


def _render_message(message: Message, t: dict[str, str]) -> None:
    with st.chat_message("user" if message.is_user else "assistant"):
        if message.weather_card is not None:
            _render_weather_card(message.weather_card, t)
        st.text(message.content)


def main() -> None:
    st.set_page_config(page_title="Bean Jam Bot", page_icon="🫘", layout="centered")
    conversation = _get_conversation()

    with st.sidebar:
        languages = ["en", "jp"]
        choice = st.radio(
            _TRANSLATIONS[conversation.language]["language"],
            languages,
            index=languages.index(conversation.language),
            format_func=lambda code: "English" if code == "en" else "日本語",
            horizontal=True,
        )
        conversation.language = choice

    t = _TRANSLATIONS[conversation.language]
    st.title(t["title"])
    st.caption(t["subtitle"])

    for message in conversation.messages:
        _render_message(message, t)

    pending = st.session_state.get("pending_input")
    user_text = st.chat_input(t["placeholder"], disabled=pending is not None)
    if user_text and user_text.strip():
        st.session_state.pending_input = user_text.strip()
        st.rerun()

    if pending is not None:
        _render_message(Message(content=pending, is_user=True), t)
        try:
            with st.spinner(t["thinking"]):
                asyncio.run(conversation.submit_turn(pending))
        finally:
            st.session_state.pending_input = None
        st.rerun()


if __name__ == "__main__":
    main()
