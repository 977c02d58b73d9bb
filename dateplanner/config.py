"""Centralized configuration loaded from environment variables.

All settings are read from environment variables with sensible defaults.
API keys are also looked up in Streamlit secrets (st.secrets) so the chat
host works on Streamlit Cloud without a .env file.
"""

import os


def _get_secret(key: str) -> str:
    """Read a secret lazily, preferring st.secrets over the environment.

    Must be called at runtime (not import time) because Streamlit
    Cloud only makes st.secrets available after the app starts.
    """
    try:
        import streamlit as st
        if hasattr(st, "secrets") and key in st.secrets:
            return str(st.secrets[key])
    except Exception:
        pass
    return os.environ.get(key, "")


def get_gemini_api_key() -> str:
    """Get the Gemini API key used by the direct model transport."""
    return _get_secret("GEMINI_API_KEY")


def get_anthropic_api_key() -> str:
    """Get the Anthropic API key used when MODEL_PROVIDER is "anthropic"."""
    return _get_secret("ANTHROPIC_API_KEY")


def get_weather_api_key() -> str:
    """Get the WeatherAPI.com key used by the direct weather transport."""
    return _get_secret("WEATHER_API_KEY")


def _get_int(key: str, default: int) -> int:
    """Read an integer environment variable with a default."""
    return int(os.environ.get(key, str(default)))


def _get_float(key: str, default: float) -> float:
    """Read a float environment variable with a default."""
    return float(os.environ.get(key, str(default)))


# Model
MODEL_PROVIDER: str = os.environ.get("MODEL_PROVIDER", "gemini").lower()
GEMINI_API_BASE_URL: str = os.environ.get(
    "GEMINI_API_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL: str = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
ANTHROPIC_MODEL: str = os.environ.get("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
CHAT_TEMPERATURE: float = _get_float("CHAT_TEMPERATURE", 0.9)
CHAT_TOP_K: int = _get_int("CHAT_TOP_K", 40)
CHAT_TOP_P: float = _get_float("CHAT_TOP_P", 0.95)
CHAT_MAX_TOKENS: int = _get_int("CHAT_MAX_TOKENS", 1024)

# Proxies. When set, the client never reads the matching key.
MODEL_PROXY_URL: str = os.environ.get("MODEL_PROXY_URL", "")
WEATHER_PROXY_URL: str = os.environ.get("WEATHER_PROXY_URL", "")

# Weather (WeatherAPI.com)
WEATHER_API_BASE_URL: str = os.environ.get(
    "WEATHER_API_BASE_URL", "https://api.weatherapi.com/v1"
)
WEATHER_FALLBACK_CITY: str = os.environ.get("WEATHER_FALLBACK_CITY", "London")
REQUEST_TIMEOUT: int = _get_int("REQUEST_TIMEOUT", 15)

# Geolocation
NOMINATIM_USER_AGENT: str = os.environ.get(
    "NOMINATIM_USER_AGENT", "date-planner-assistant"
)
NOMINATIM_TIMEOUT: int = _get_int("NOMINATIM_TIMEOUT", 10)
BIGDATACLOUD_URL: str = os.environ.get(
    "BIGDATACLOUD_URL", "https://api.bigdatacloud.net/data/reverse-geocode-client"
)
IPAPI_URL: str = os.environ.get("IPAPI_URL", "https://ipapi.co/json/")
IP_API_URL: str = os.environ.get("IP_API_URL", "http://ip-api.com/json/")
GEOLOCATION_TIMEOUT: int = _get_int("GEOLOCATION_TIMEOUT", 10)
GEOLOCATION_MAX_AGE: int = _get_int("GEOLOCATION_MAX_AGE", 300)

# Conversation
DEFAULT_LANGUAGE: str = os.environ.get("DEFAULT_LANGUAGE", "en")

# Proxy service
PROXY_HOST: str = os.environ.get("PROXY_HOST", "0.0.0.0")
PROXY_PORT: int = _get_int("PROXY_PORT", 8000)
PROXY_ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get("PROXY_ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]

# Logging
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.environ.get("LOG_FORMAT", "console").lower()