"""Reverse geocoding for ride start/end addresses.

Geocoding is a display concern: lookups that fail are logged and replaced
with a placeholder, never propagated to the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from ridecache.config import RideCacheConfig
from ridecache.exceptions import GeocodingError
from ridecache.models.geo import GeoPoint
from ridecache.models.ride import RideRecord

_logger = logging.getLogger(__name__)

# Cache granularity, about 1 m.
_CACHE_DECIMALS = 5


class LocationService(Protocol):
    """Structural reverse-geocoder interface."""

    async def get_formatted_address(self, latitude: float, longitude: float) -> str:
        ...


@dataclass(frozen=True)
class RideAddresses:
    """Formatted addresses for a ride; ``end`` is ``None`` while riding."""

    start: str
    end: str | None


class NominatimLocationService:
    """Reverse geocoder backed by a Nominatim-compatible ``/reverse`` endpoint.

    Usage::

        async with NominatimLocationService(config) as geocoder:
            address = await geocoder.get_formatted_address(52.37, 4.89)
    """

    def __init__(
        self,
        config: RideCacheConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config or RideCacheConfig()
        self._external_session = session is not None
        self._http_session = session
        self._cache: dict[tuple[float, float], str] = {}

    async def __aenter__(self) -> NominatimLocationService:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.geocoder_timeout),
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    async def get_formatted_address(self, latitude: float, longitude: float) -> str:
        """Return the display address for a coordinate.

        Raises
        ------
        GeocodingError
            On network failure, non-200 status, invalid JSON, or a response
            without an address.
        """
        cache_key = (round(latitude, _CACHE_DECIMALS), round(longitude, _CACHE_DECIMALS))
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        if self._http_session is None:
            raise GeocodingError("Geocoder session not started; use 'async with'")

        url = f"{self._config.geocoder_base_url.rstrip('/')}/reverse"
        params = {
            "format": "jsonv2",
            "lat": f"{latitude:.6f}",
            "lon": f"{longitude:.6f}",
            "zoom": "18",
            "addressdetails": "0",
        }
        headers = {
            "user-agent": self._config.geocoder_user_agent,
            "accept-language": self._config.geocoder_language,
        }

        _logger.debug("GET %s", url)

        try:
            async with self._http_session.get(url, params=params, headers=headers) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise GeocodingError(
                        f"HTTP {resp.status} from reverse geocoder: {text[:200]}",
                        status_code=resp.status,
                    )
        except GeocodingError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise GeocodingError(f"Reverse geocoding request failed: {exc}") from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise GeocodingError(f"Invalid JSON from reverse geocoder: {text[:200]}") from exc

        if not isinstance(body, dict):
            raise GeocodingError("Reverse geocoder response is not an object")
        if "error" in body:
            raise GeocodingError(f"Reverse geocoder error: {body['error']}")

        address = body.get("display_name")
        if not isinstance(address, str) or not address.strip():
            raise GeocodingError("Reverse geocoder response missing display_name")

        address = address.strip()
        self._cache[cache_key] = address
        return address


async def resolve_address(
    service: LocationService,
    point: GeoPoint,
    *,
    placeholder: str = "Address unavailable",
) -> str:
    """Look up *point*, returning *placeholder* on any lookup failure."""
    try:
        address = await service.get_formatted_address(point.latitude, point.longitude)
    except Exception:
        _logger.warning("Reverse geocoding failed for %s", point, exc_info=True)
        return placeholder
    return address or placeholder


async def resolve_ride_addresses(
    service: LocationService,
    ride: RideRecord,
    *,
    placeholder: str = "Address unavailable",
) -> RideAddresses:
    """Resolve start and (when the ride has ended) end addresses concurrently."""
    if ride.end_coordinates is None:
        start = await resolve_address(service, ride.start_coordinates, placeholder=placeholder)
        return RideAddresses(start=start, end=None)
    start, end = await asyncio.gather(
        resolve_address(service, ride.start_coordinates, placeholder=placeholder),
        resolve_address(service, ride.end_coordinates, placeholder=placeholder),
    )
    return RideAddresses(start=start, end=end)
