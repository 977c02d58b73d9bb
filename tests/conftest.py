"""Shared test fixtures for provider response data."""

import pytest

from dateplanner.location import LocationSnapshot, LocationSource


@pytest.fixture()
def forecast_payload():
    """Sample WeatherAPI.com forecast.json response for Tokyo, two days."""
    return {
        "location": {
            "name": "Tokyo",
            "region": "Tokyo",
            "country": "Japan",
            "localtime": "2026-04-10 09:15",
        },
        "current": {
            "temp_c": 18.0,
            "feelslike_c": 17.2,
            "condition": {
                "text": "Partly cloudy",
                "icon": "//cdn.weatherapi.com/weather/64x64/day/116.png",
            },
            "wind_kph": 11.2,
            "humidity": 62,
        },
        "forecast": {
            "forecastday": [
                {
                    "date": "2026-04-10",
                    "day": {
                        "maxtemp_c": 20.1,
                        "mintemp_c": 12.4,
                        "avgtemp_c": 16.3,
                        "condition": {
                            "text": "Partly cloudy",
                            "icon": "//cdn.weatherapi.com/weather/64x64/day/116.png",
                        },
                        "daily_chance_of_rain": 0,
                        "daily_chance_of_snow": 0,
                        "avghumidity": 60,
                        "maxwind_kph": 14.0,
                    },
                },
                {
                    "date": "2026-04-11",
                    "day": {
                        "maxtemp_c": 22.5,
                        "mintemp_c": 13.0,
                        "avgtemp_c": 17.8,
                        "condition": {
                            "text": "Sunny",
                            "icon": "//cdn.weatherapi.com/weather/64x64/day/113.png",
                        },
                        "daily_chance_of_rain": 10,
                        "daily_chance_of_snow": 0,
                        "avghumidity": 48,
                        "maxwind_kph": 9.4,
                    },
                },
            ]
        },
    }


@pytest.fixture()
def gemini_response():
    """Build a Gemini generateContent response carrying the given text parts."""

    def _build(*texts):
        return {
            "candidates": [
                {
                    "content": {
                        "role": "model",
                        "parts": [{"text": t} for t in texts],
                    },
                    "finishReason": "STOP",
                }
            ]
        }

    return _build


@pytest.fixture()
def tokyo_gps():
    return LocationSnapshot(
        source=LocationSource.GPS,
        city="Tokyo",
        region="Tokyo",
        country="Japan",
        latitude=35.6762,
        longitude=139.6503,
    )


@pytest.fixture()
def unknown_location():
    return LocationSnapshot(source=LocationSource.UNKNOWN)
