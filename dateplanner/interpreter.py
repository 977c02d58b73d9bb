"""Turns raw model text into display text plus a weather-card intent.

The model is asked to put a literal control token at the top of weather
answers and to avoid markdown. Neither instruction is reliably followed,
so interpretation always strips every token occurrence and sanitizes
markdown, whatever the model produced.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from dateplanner.prompts import CONTROL_TOKEN


@dataclass(frozen=True)
class ModelTurnResult:
    """Interpreted model output.

    Attributes:
        response_text: Plain text safe to render. Never contains the
            control token.
        show_weather_card: True iff the raw output contained the token.
            This is a display intent only; whether card data exists is
            decided by the caller.
    """

    response_text: str
    show_weather_card: bool


# Applied in order. Images before links so "![a](b)" is not read as a link.
_MARKDOWN_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"```[^\n`]*\n?"), ""),                              # code fences
    (re.compile(r"`([^`]+)`"), r"\1"),                                # inline code
    (re.compile(r"!\[([^\]]*)\]\(([^)]+)\)"), r"\1 (\2)"),            # images
    (re.compile(r"\[([^\]]+)\]\(([^)]+)\)"), r"\1 (\2)"),             # links
    (re.compile(r"^[ \t]{0,3}(?:-{3,}|\*{3,}|_{3,})[ \t]*$", re.M), ""),  # rules
    (re.compile(r"^[ \t]*(?:#+[ \t]+)+", re.M), ""),                  # headings
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),                            # bold
    (re.compile(r"(?<!\w)__(.+?)__(?!\w)"), r"\1"),
    (re.compile(r"\*(.+?)\*"), r"\1"),                                # italic
    (re.compile(r"(?<!\w)_(.+?)_(?!\w)"), r"\1"),
    (re.compile(r"[ \t]{2,}"), " "),                                  # whitespace
    (re.compile(r"[ \t]+\n"), "\n"),
    (re.compile(r"\n{3,}"), "\n\n"),
]


def _strip_once(text: str) -> str:
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def strip_markdown(text: str) -> str:
    """Remove markdown syntax so the text renders as plain text.

    Handles code fences, inline code, emphasis, headings, links, images
    and horizontal rules, and collapses runs of blank space. Passes are
    repeated until the text stops changing, which makes the function
    idempotent. Every rule only removes characters, so this terminates.
    """
    if not text:
        return ""
    while True:
        cleaned = _strip_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned


def interpret(raw_text: str) -> ModelTurnResult:
    """Split raw model output into display text and card intent.

    Args:
        raw_text: Concatenated text parts of the model response.

    Returns:
        ModelTurnResult with the token removed and markdown stripped.
    """
    raw_text = raw_text or ""
    show_card = CONTROL_TOKEN in raw_text

    text = raw_text
    while True:
        # Sanitizing can reassemble a token (e.g. from "[SHOW_`WEATHER`_CARD]").
        cleaned = strip_markdown(text.replace(CONTROL_TOKEN, "").strip())
        if cleaned == text:
            break
        text = cleaned

    return ModelTurnResult(response_text=text, show_weather_card=show_card)
