"""Exception hierarchy shared by the location, weather and model layers."""

from __future__ import annotations


class DatePlannerError(Exception):
    """Base exception for the assistant."""


class ConfigMissing(DatePlannerError):
    """Raised when no API key or proxy URL is configured for a call."""


class UpstreamError(DatePlannerError):
    """Raised when a provider returns a non-success response or is unreachable.

    Attributes:
        status_code: HTTP status of the failed response, if there was one.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(UpstreamError):
    """Raised when a provider response body cannot be understood."""


class PermissionDenied(DatePlannerError):
    """Raised when the user refuses device geolocation."""


class LocationUnavailable(DatePlannerError):
    """Raised when the device cannot produce a position fix."""


class WeatherUnavailable(DatePlannerError):
    """Raised when weather data cannot be fetched for a turn."""
