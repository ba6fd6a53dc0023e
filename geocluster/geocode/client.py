"""Resolve locations to coordinates using Nominatim behind a cache."""
from __future__ import annotations

import asyncio
import math
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from geocluster.geocode.address import build_address_query
from geocluster.geocode.cache import GeocodeCache
from geocluster.geocode.errors import (
    GeocodingEmptyResult,
    GeocodingError,
    GeocodingMalformedResult,
    GeocodingTransportError,
)
from geocluster.models import GeocodedLocation, Location
from geocluster.observability.metrics import MetricsRegistry
from geocluster.settings import NOMINATIM_URL
from geocluster.store.notifier import CoordinateNotifier

LOGGER = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = "Arcane-City-Events/1.0"


def known_coordinates(location: Location) -> Optional[GeocodedLocation]:
    """Return the location's own coordinates, if it carries them."""
    if not location.has_coordinates:
        return None
    return GeocodedLocation(
        lat=float(location.latitude),
        lng=float(location.longitude),
        address=build_address_query(location) or "",
    )


def _parse_degrees(query: str, candidate: Any, field: str) -> float:
    try:
        value = float(candidate[field])
    except (KeyError, TypeError, ValueError) as exc:
        raise GeocodingMalformedResult(query, f"unparsable {field}") from exc
    if not math.isfinite(value):
        raise GeocodingMalformedResult(query, f"non-finite {field}")
    return value


class GeocodingClient:
    """Looks up coordinates for locations, one network call at a time.

    Lookups go through ``cache`` first; failed lookups are cached too, so a
    query reaches the service at most once per cache lifetime. Successful
    lookups are handed to ``notifier`` in the background.
    """

    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        cache: GeocodeCache,
        notifier: Optional[CoordinateNotifier] = None,
        base_url: str = NOMINATIM_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        min_interval: float = 1.0,
        metrics: Optional[MetricsRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._http = http
        self._cache = cache
        self._notifier = notifier
        self._search_url = f"{base_url.rstrip('/')}/search"
        self._user_agent = user_agent
        self._min_interval = min_interval
        self._metrics = metrics or MetricsRegistry()
        self._clock = clock
        self._sleep = sleep
        self._throttle_lock = asyncio.Lock()
        self._last_request: Optional[float] = None

    @property
    def cache(self) -> GeocodeCache:
        return self._cache

    async def resolve(self, location: Location) -> Optional[GeocodedLocation]:
        """Return coordinates for ``location`` or None; never raises."""
        existing = known_coordinates(location)
        if existing is not None:
            return existing

        query = build_address_query(location)
        if query is None:
            return None

        entry = self._cache.get(query)
        if entry is not None:
            self._metrics.incr("geocode_cache_hits")
            return entry.result

        try:
            result = await self._lookup(query)
        except GeocodingEmptyResult:
            self._metrics.incr("geocode_empty")
            LOGGER.warning("geocode_empty", query=query, location_id=location.id)
            self._cache.put(query, None)
            return None
        except GeocodingError as exc:
            self._metrics.incr("geocode_failures")
            LOGGER.error("geocode_failed", query=query, location_id=location.id, reason=exc.reason)
            self._cache.put(query, None)
            return None

        self._cache.put(query, result)
        if self._notifier is not None:
            self._notifier.notify(location.id, result.lat, result.lng, name=location.name)
        return result

    async def _throttle(self) -> None:
        async with self._throttle_lock:
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                if elapsed < self._min_interval:
                    await self._sleep(self._min_interval - elapsed)
            self._last_request = self._clock()

    async def _lookup(self, query: str) -> GeocodedLocation:
        await self._throttle()
        self._metrics.incr("geocode_requests")
        params = {"q": query, "format": "json", "limit": "1", "addressdetails": "1"}
        try:
            response = await self._http.get(
                self._search_url,
                params=params,
                headers={"User-Agent": self._user_agent},
            )
        except httpx.HTTPError as exc:
            raise GeocodingTransportError(query, f"transport error: {exc}") from exc
        if not response.is_success:
            raise GeocodingTransportError(query, f"status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocodingMalformedResult(query, "invalid JSON body") from exc
        if not isinstance(payload, list):
            raise GeocodingMalformedResult(query, "expected a JSON array")
        if not payload:
            raise GeocodingEmptyResult(query, "no results")

        candidate = payload[0]
        lat = _parse_degrees(query, candidate, "lat")
        lng = _parse_degrees(query, candidate, "lon")
        label = candidate.get("display_name") if isinstance(candidate, dict) else None
        LOGGER.debug("geocode_resolved", query=query, lat=lat, lng=lng)
        return GeocodedLocation(lat=lat, lng=lng, address=query, label=label)
