"""WeatherAPI.com client and weather helpers for the conversation.

Two transports share one contract:
1. Direct: GET {WEATHER_API_BASE_URL}/forecast.json with a client-held key.
2. Proxied: POST {WEATHER_PROXY_URL} with {q, days}; the proxy holds the key.

When WEATHER_PROXY_URL is set it is used exclusively.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog

from dateplanner import config
from dateplanner.errors import ConfigMissing, ParseError, UpstreamError, WeatherUnavailable
from dateplanner.http_client import request_json
from dateplanner.location import LocationSnapshot

logger = structlog.get_logger(__name__)

MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 10


@dataclass(frozen=True)
class CurrentConditions:
    """Current conditions at the forecast location.

    Attributes:
        temp_c: Air temperature in Celsius.
        feels_like_c: Apparent temperature in Celsius.
        condition_text: Short description (e.g., "Partly cloudy").
        wind_kph: Wind speed in km/h.
        humidity: Relative humidity in percent.
        icon_url: Condition icon URL.
    """

    temp_c: float
    feels_like_c: float
    condition_text: str
    wind_kph: float
    humidity: int
    icon_url: str = ""


@dataclass(frozen=True)
class ForecastDay:
    """One day of the forecast.

    Attributes:
        date: ISO date (YYYY-MM-DD).
        temp_high_c: Daily maximum in Celsius.
        temp_low_c: Daily minimum in Celsius.
        temp_avg_c: Daily average in Celsius.
        condition_text: Short description.
        chance_of_rain: Daily chance of rain in percent.
        chance_of_snow: Daily chance of snow in percent.
        humidity: Average humidity in percent.
        wind_kph: Maximum wind speed in km/h.
        icon_url: Condition icon URL.
    """

    date: str
    temp_high_c: float
    temp_low_c: float
    temp_avg_c: float
    condition_text: str
    chance_of_rain: int
    chance_of_snow: int
    humidity: int
    wind_kph: float
    icon_url: str = ""

    @property
    def precipitation_chance(self) -> int:
        """Chance of rain, or of snow when no rain is expected."""
        return self.chance_of_rain or self.chance_of_snow or 0


@dataclass(frozen=True)
class WeatherSnapshot:
    """Normalized forecast payload for one turn.

    Attributes:
        location_name: Place name reported by the provider.
        region: Region reported by the provider.
        country: Country reported by the provider.
        local_time: Local time string at the location.
        current: Current conditions.
        forecast_days: Forecast days in order, starting with today.
    """

    location_name: str
    region: str
    country: str
    local_time: str
    current: CurrentConditions
    forecast_days: list[ForecastDay] = field(default_factory=list)

    @property
    def location_label(self) -> str:
        return ", ".join(p for p in (self.location_name, self.region, self.country) if p)


@dataclass(frozen=True)
class WeatherCard:
    """The subset of a snapshot shown on the weather card."""

    location: str
    temperature: float
    feels_like: float
    condition: str
    precipitation: int
    humidity: int
    wind_speed: float
    icon: str = ""


def clamp_days(days: int) -> int:
    """Clamp a requested forecast length to what the provider serves."""
    return min(max(days, MIN_FORECAST_DAYS), MAX_FORECAST_DAYS)


def build_query(location: LocationSnapshot) -> str:
    """Build the provider query for a location.

    Coordinates win over the city name, which wins over the fallback
    city. The sources are never combined.
    """
    if location.has_coordinates:
        return f"{location.latitude},{location.longitude}"
    if location.city:
        return location.city
    logger.warning("No location data for weather, using fallback city",
                   city=config.WEATHER_FALLBACK_CITY)
    return config.WEATHER_FALLBACK_CITY


_DAY_PHRASES: dict[str, list[tuple[str, int]]] = {
    # Longer phrases first: "day after tomorrow" contains "tomorrow".
    "en": [("day after tomorrow", 2), ("tomorrow", 1), ("today", 0)],
    "jp": [("明後日", 2), ("あさって", 2), ("明日", 1), ("あした", 1), ("今日", 0), ("きょう", 0)],
}


def parse_date_offset(text: str, language: str = "en") -> int:
    """Map a free-text day reference to a day offset.

    Args:
        text: The user's message.
        language: "en" or "jp".

    Returns:
        0 for today, 1 for tomorrow, 2 for the day after tomorrow;
        0 when no day reference is found.
    """
    lowered = text.lower()
    for phrase, offset in _DAY_PHRASES.get(language, _DAY_PHRASES["en"]):
        if phrase in lowered:
            return offset
    return 0


def _parse_current(data: dict) -> CurrentConditions:
    condition = data.get("condition") or {}
    return CurrentConditions(
        temp_c=data["temp_c"],
        feels_like_c=data.get("feelslike_c", data["temp_c"]),
        condition_text=condition.get("text", ""),
        wind_kph=data.get("wind_kph", 0),
        humidity=data.get("humidity", 0),
        icon_url=condition.get("icon", ""),
    )


def _parse_forecast_days(data: dict) -> list[ForecastDay]:
    days = []
    for entry in (data.get("forecast") or {}).get("forecastday", []):
        day = entry["day"]
        condition = day.get("condition") or {}
        days.append(
            ForecastDay(
                date=entry.get("date", ""),
                temp_high_c=day.get("maxtemp_c", 0),
                temp_low_c=day.get("mintemp_c", 0),
                temp_avg_c=day.get("avgtemp_c", 0),
                condition_text=condition.get("text", ""),
                chance_of_rain=day.get("daily_chance_of_rain", 0) or 0,
                chance_of_snow=day.get("daily_chance_of_snow", 0) or 0,
                humidity=day.get("avghumidity", 0),
                wind_kph=day.get("maxwind_kph", 0),
                icon_url=condition.get("icon", ""),
            )
        )
    return days


def parse_snapshot(data: dict) -> WeatherSnapshot:
    """Normalize a WeatherAPI.com forecast payload.

    Raises:
        ParseError: If the payload is missing location or current data.
    """
    try:
        location = data["location"]
        return WeatherSnapshot(
            location_name=location.get("name", ""),
            region=location.get("region", ""),
            country=location.get("country", ""),
            local_time=location.get("localtime", ""),
            current=_parse_current(data["current"]),
            forecast_days=_parse_forecast_days(data),
        )
    except (KeyError, TypeError, AttributeError) as exc:
        raise ParseError("Unexpected forecast response format from the weather API.") from exc


class WeatherClient:
    """Fetches WeatherSnapshots through the direct API or the weather proxy.

    Args:
        api_key: WeatherAPI.com key for the direct transport. Read lazily
            from config when omitted.
        proxy_url: Weather proxy endpoint. Defaults to WEATHER_PROXY_URL.
    """

    def __init__(self, api_key: str | None = None, proxy_url: str | None = None) -> None:
        self._api_key = api_key
        self.proxy_url = config.WEATHER_PROXY_URL if proxy_url is None else proxy_url

    @property
    def api_key(self) -> str:
        if self._api_key is None:
            return config.get_weather_api_key()
        return self._api_key

    async def _fetch_payload(self, client: httpx.AsyncClient, query: str, days: int) -> dict:
        if self.proxy_url:
            logger.info("Fetching weather via proxy", query=query, days=days)
            return await request_json(
                client,
                "POST",
                self.proxy_url,
                provider="weather proxy",
                json={"q": query, "days": days},
            )

        api_key = self.api_key
        if not api_key:
            raise ConfigMissing(
                "Weather API key is not configured. "
                "Set WEATHER_API_KEY or WEATHER_PROXY_URL."
            )
        logger.info("Fetching weather", query=query, days=days)
        return await request_json(
            client,
            "GET",
            f"{config.WEATHER_API_BASE_URL}/forecast.json",
            provider="weather API",
            max_retries=1,
            params={"key": api_key, "q": query, "days": days, "aqi": "no", "alerts": "yes"},
        )

    async def fetch_payload(self, query: str, days: int = 1) -> dict:
        """Fetch the raw forecast payload for a provider query.

        Raises:
            ConfigMissing: If neither a key nor a proxy is configured.
            UpstreamError: If the provider call fails.
        """
        async with httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT) as client:
            return await self._fetch_payload(client, query, clamp_days(days))

    async def fetch(self, location: LocationSnapshot, requested_days: int = 1) -> WeatherSnapshot:
        """Fetch the forecast for a location.

        Args:
            location: The resolved user location.
            requested_days: Number of forecast days, clamped to 1..10.

        Returns:
            WeatherSnapshot with current conditions and forecast days.

        Raises:
            WeatherUnavailable: If nothing is configured or the upstream
                call fails. Callers treat this as non-fatal.
        """
        try:
            payload = await self.fetch_payload(build_query(location), requested_days)
            return parse_snapshot(payload)
        except (ConfigMissing, UpstreamError) as exc:
            raise WeatherUnavailable(str(exc)) from exc


def extract_card(snapshot: WeatherSnapshot, day_index: int = 0) -> WeatherCard:
    """Pick the card fields for a day of the snapshot.

    Day 0 uses current conditions. Later days use the matching forecast
    day, with the daily average standing in for "feels like". An index
    with no forecast day falls back to current conditions.
    """
    label = (
        f"{snapshot.location_name}, {snapshot.region}"
        if snapshot.region
        else f"{snapshot.location_name}, {snapshot.country}"
    )

    if day_index > 0 and day_index < len(snapshot.forecast_days):
        day = snapshot.forecast_days[day_index]
        return WeatherCard(
            location=label,
            temperature=day.temp_avg_c,
            feels_like=day.temp_avg_c,
            condition=day.condition_text,
            precipitation=day.precipitation_chance,
            humidity=day.humidity,
            wind_speed=day.wind_kph,
            icon=day.icon_url,
        )

    current = snapshot.current
    return WeatherCard(
        location=label,
        temperature=current.temp_c,
        feels_like=current.feels_like_c,
        condition=current.condition_text,
        precipitation=0,
        humidity=current.humidity,
        wind_speed=current.wind_kph,
        icon=current.icon_url,
    )


_SUMMARY_LABELS = {
    "en": {
        "current": "Current: {temp}°C (feels like {feels}°C)",
        "conditions": "Conditions: {text}",
        "wind": "Wind: {wind} km/h",
        "humidity": "Humidity: {humidity}%",
        "forecast": "Forecast:",
        "day": "{date}: {text}, High {high}°C / Low {low}°C",
        "rain": " ({chance}% chance of rain)",
    },
    "jp": {
        "current": "現在の気温: {temp}°C (体感 {feels}°C)",
        "conditions": "天気: {text}",
        "wind": "風速: {wind} km/h",
        "humidity": "湿度: {humidity}%",
        "forecast": "予報:",
        "day": "{date}: {text}, 最高 {high}°C / 最低 {low}°C",
        "rain": " (降水確率 {chance}%)",
    },
}


def format_weather_summary(snapshot: WeatherSnapshot, language: str = "en") -> str:
    """Describe a snapshot in plain language for the model prompt."""
    labels = _SUMMARY_LABELS.get(language, _SUMMARY_LABELS["en"])
    current = snapshot.current
    lines = [
        f"📍 {snapshot.location_label}",
        "🌡️ " + labels["current"].format(temp=current.temp_c, feels=current.feels_like_c),
        "☁️ " + labels["conditions"].format(text=current.condition_text),
        "💨 " + labels["wind"].format(wind=current.wind_kph),
        "💧 " + labels["humidity"].format(humidity=current.humidity),
    ]
    if snapshot.forecast_days:
        lines.append("")
        lines.append("📅 " + labels["forecast"])
        for day in snapshot.forecast_days:
            line = labels["day"].format(
                date=day.date, text=day.condition_text,
                high=day.temp_high_c, low=day.temp_low_c,
            )
            if day.chance_of_rain > 0:
                line += labels["rain"].format(chance=day.chance_of_rain)
            lines.append(line)
    return "\n".join(lines)
