"""Tests for the config module."""

import importlib
from unittest.mock import patch

from dateplanner import config


class TestConfigDefaults:
    """Verify default values when no environment variables are set."""

    def test_model_provider_default(self):
        assert config.MODEL_PROVIDER in ("gemini", "anthropic")

    def test_gemini_model_default(self):
        assert config.GEMINI_MODEL == "gemini-2.5-flash"

    def test_generation_defaults(self):
        assert config.CHAT_TEMPERATURE == 0.9
        assert config.CHAT_TOP_K == 40
        assert config.CHAT_TOP_P == 0.95
        assert config.CHAT_MAX_TOKENS == 1024

    def test_weather_api_base_url_default(self):
        assert config.WEATHER_API_BASE_URL == "https://api.weatherapi.com/v1"

    def test_weather_fallback_city_default(self):
        assert config.WEATHER_FALLBACK_CITY == "London"

    def test_geolocation_timeout_default(self):
        assert config.GEOLOCATION_TIMEOUT == 10


class TestConfigEnvOverrides:
    """Verify environment variables override defaults."""

    def teardown_method(self):
        importlib.reload(config)  # Reset

    def test_weather_proxy_url_override(self):
        with patch.dict("os.environ", {"WEATHER_PROXY_URL": "https://proxy.example.com/api/weather"}):
            importlib.reload(config)
        assert config.WEATHER_PROXY_URL == "https://proxy.example.com/api/weather"

    def test_model_provider_is_lowercased(self):
        with patch.dict("os.environ", {"MODEL_PROVIDER": "Anthropic"}):
            importlib.reload(config)
        assert config.MODEL_PROVIDER == "anthropic"

    def test_numeric_overrides(self):
        with patch.dict("os.environ", {"CHAT_MAX_TOKENS": "2048", "CHAT_TEMPERATURE": "0.3"}):
            importlib.reload(config)
        assert config.CHAT_MAX_TOKENS == 2048
        assert config.CHAT_TEMPERATURE == 0.3

    def test_allowed_origins_split(self):
        with patch.dict(
            "os.environ", {"PROXY_ALLOWED_ORIGINS": "http://localhost:5173, https://app.example.com"}
        ):
            importlib.reload(config)
        assert config.PROXY_ALLOWED_ORIGINS == ["http://localhost:5173", "https://app.example.com"]


class TestSecretGetters:
    """API keys are read lazily at call time."""

    @patch.dict("os.environ", {"GEMINI_API_KEY": "gm-test"})
    def test_gemini_key_from_env(self):
        assert config.get_gemini_api_key() == "gm-test"

    @patch.dict("os.environ", {"WEATHER_API_KEY": "wx-test"})
    def test_weather_key_from_env(self):
        assert config.get_weather_api_key() == "wx-test"

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_key_is_empty(self):
        assert config.get_anthropic_api_key() == ""
