"""Best-effort user location for the conversation.

Resolution walks a fixed fallback chain and never raises:
1. Device position fix (bounded wait), named through reverse geocoding:
   Nominatim via geopy first, BigDataCloud second. If neither names a
   locality the raw coordinates are still returned with source GPS.
2. IP geolocation: ipapi.co first, ip-api.com second.
3. Otherwise a snapshot with source UNKNOWN.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Sequence

import httpx
import structlog
from geopy.exc import GeocoderServiceError, GeocoderTimedOut
from geopy.geocoders import Nominatim

from dateplanner import config
from dateplanner.errors import DatePlannerError, LocationUnavailable, PermissionDenied, UpstreamError
from dateplanner.http_client import request_json

logger = structlog.get_logger(__name__)


class LocationSource(str, Enum):
    """Where a location snapshot came from."""

    GPS = "gps"
    IP = "ip"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Coordinates:
    """A raw device position fix."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class LocationSnapshot:
    """The user's location as resolved once per session.

    Attributes:
        source: GPS, IP or UNKNOWN.
        city: Locality name, if a geocoder provided one.
        region: State / province / prefecture.
        country: Country name.
        latitude: Decimal latitude.
        longitude: Decimal longitude.
    """

    source: LocationSource
    city: str | None = None
    region: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_known(self) -> bool:
        """True when the snapshot carries enough data to look up weather."""
        return self.source is not LocationSource.UNKNOWN and (
            self.has_coordinates or bool(self.city)
        )


# Takes the acceptable cached-fix age in seconds and returns a position.
# Raises PermissionDenied or LocationUnavailable when no fix can be had.
DeviceLocator = Callable[[int], Awaitable[Coordinates]]
ReverseGeocoder = Callable[[httpx.AsyncClient, float, float], Awaitable["LocationSnapshot | None"]]
IPLocator = Callable[[httpx.AsyncClient], Awaitable["LocationSnapshot | None"]]


class StaticDeviceLocator:
    """Device locator for hosts that already know the position (e.g. query params)."""

    def __init__(self, latitude: float, longitude: float) -> None:
        self.coordinates = Coordinates(latitude=latitude, longitude=longitude)

    async def __call__(self, max_age: int) -> Coordinates:
        return self.coordinates


def format_location(location: LocationSnapshot) -> str:
    """Render a snapshot as a short human-readable label.

    Returns "city, region, country" from whichever parts are present,
    falling back to rounded coordinates, then to "Unknown location".
    """
    parts = [p for p in (location.city, location.region, location.country) if p]
    if parts:
        return ", ".join(parts)
    if location.has_coordinates:
        return f"{location.latitude:.2f}°, {location.longitude:.2f}°"
    return "Unknown location"


async def reverse_nominatim(
    client: httpx.AsyncClient, latitude: float, longitude: float
) -> LocationSnapshot | None:
    """Name a coordinate pair with OpenStreetMap Nominatim (via geopy)."""
    geolocator = Nominatim(
        user_agent=config.NOMINATIM_USER_AGENT,
        timeout=config.NOMINATIM_TIMEOUT,
    )
    try:
        result = await asyncio.to_thread(
            geolocator.reverse,
            (latitude, longitude),
            exactly_one=True,
            zoom=10,
            addressdetails=True,
            language="en",
        )
    except (GeocoderTimedOut, GeocoderServiceError) as exc:
        raise UpstreamError(f"Nominatim reverse geocoding failed: {exc}") from exc

    if result is None:
        return None
    address = (result.raw or {}).get("address", {})
    city = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("hamlet")
        or address.get("municipality")
        or address.get("county")
    )
    if not city:
        return None
    return LocationSnapshot(
        source=LocationSource.GPS,
        city=city,
        region=address.get("state") or address.get("province") or address.get("region"),
        country=address.get("country"),
        latitude=latitude,
        longitude=longitude,
    )


async def reverse_bigdatacloud(
    client: httpx.AsyncClient, latitude: float, longitude: float
) -> LocationSnapshot | None:
    """Name a coordinate pair with the BigDataCloud client-side endpoint."""
    data = await request_json(
        client,
        "GET",
        config.BIGDATACLOUD_URL,
        provider="BigDataCloud",
        params={"latitude": latitude, "longitude": longitude, "localityLanguage": "en"},
    )
    city = data.get("city") or data.get("locality") or data.get("principalSubdivision")
    if not city:
        return None
    return LocationSnapshot(
        source=LocationSource.GPS,
        city=city,
        region=data.get("principalSubdivision") or data.get("principalSubdivisionCode"),
        country=data.get("countryName"),
        latitude=latitude,
        longitude=longitude,
    )


async def locate_ipapi_co(client: httpx.AsyncClient) -> LocationSnapshot | None:
    """Approximate the location from the caller's IP with ipapi.co."""
    data = await request_json(client, "GET", config.IPAPI_URL, provider="ipapi.co")
    if not data.get("city"):
        return None
    return LocationSnapshot(
        source=LocationSource.IP,
        city=data["city"],
        region=data.get("region"),
        country=data.get("country_name"),
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
    )


async def locate_ip_api_com(client: httpx.AsyncClient) -> LocationSnapshot | None:
    """Approximate the location from the caller's IP with ip-api.com."""
    data = await request_json(client, "GET", config.IP_API_URL, provider="ip-api.com")
    if data.get("status") != "success" or not data.get("city"):
        return None
    return LocationSnapshot(
        source=LocationSource.IP,
        city=data["city"],
        region=data.get("regionName"),
        country=data.get("country"),
        latitude=data.get("lat"),
        longitude=data.get("lon"),
    )


DEFAULT_REVERSE_GEOCODERS: tuple[ReverseGeocoder, ...] = (reverse_nominatim, reverse_bigdatacloud)
DEFAULT_IP_LOCATORS: tuple[IPLocator, ...] = (locate_ipapi_co, locate_ip_api_com)


async def _first_hit(strategies: Sequence[Callable], *args) -> LocationSnapshot | None:
    """Run strategies in order and return the first snapshot produced.

    A strategy that raises is logged and skipped; one that returns None
    is a miss and the next one is tried.
    """
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            result = await strategy(*args)
        except DatePlannerError as exc:
            logger.warning("Location provider failed", provider=name, error=str(exc))
            continue
        if result is not None:
            logger.info("Location provider succeeded", provider=name, city=result.city)
            return result
        logger.info("Location provider returned no locality", provider=name)
    return None


class LocationResolver:
    """Resolves a LocationSnapshot through the GPS -> reverse geocode -> IP chain.

    Args:
        device_locator: Async callable producing a device fix, or None when
            the host has no way to obtain one.
        reverse_geocoders: Ordered strategies naming a coordinate pair.
        ip_locators: Ordered strategies locating the caller by IP.
        timeout: Seconds to wait for the device fix.
        max_age: Acceptable age in seconds of a cached device fix.
    """

    def __init__(
        self,
        device_locator: DeviceLocator | None = None,
        reverse_geocoders: Sequence[ReverseGeocoder] = DEFAULT_REVERSE_GEOCODERS,
        ip_locators: Sequence[IPLocator] = DEFAULT_IP_LOCATORS,
        timeout: float = config.GEOLOCATION_TIMEOUT,
        max_age: int = config.GEOLOCATION_MAX_AGE,
    ) -> None:
        self.device_locator = device_locator
        self.reverse_geocoders = tuple(reverse_geocoders)
        self.ip_locators = tuple(ip_locators)
        self.timeout = timeout
        self.max_age = max_age

    async def _device_fix(self) -> Coordinates | None:
        if self.device_locator is None:
            logger.info("Device geolocation not available")
            return None
        try:
            return await asyncio.wait_for(self.device_locator(self.max_age), timeout=self.timeout)
        except PermissionDenied:
            logger.info("Device geolocation denied by user")
        except LocationUnavailable as exc:
            logger.warning("Device position unavailable", error=str(exc))
        except asyncio.TimeoutError:
            logger.warning("Device geolocation timed out", timeout=self.timeout)
        return None

    async def resolve(self) -> LocationSnapshot:
        """Resolve the user's location. Never raises.

        Returns:
            The first snapshot the chain produces, or one with source
            UNKNOWN when every step failed.
        """
        async with httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT) as client:
            fix = await self._device_fix()
            if fix is not None:
                named = await _first_hit(
                    self.reverse_geocoders, client, fix.latitude, fix.longitude
                )
                if named is not None:
                    return named
                logger.warning("Could not name device coordinates, returning them bare")
                return LocationSnapshot(
                    source=LocationSource.GPS,
                    latitude=fix.latitude,
                    longitude=fix.longitude,
                )

            located = await _first_hit(self.ip_locators, client)
            if located is not None:
                return located

        logger.warning("All location providers failed")
        return LocationSnapshot(source=LocationSource.UNKNOWN)
