"""Rate-limited geocoding of a list of locations."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Iterable

from geocluster.geocode.address import build_address_query
from geocluster.geocode.client import GeocodingClient
from geocluster.models import GeocodedLocation, Location


async def geocode_batch(
    client: GeocodingClient,
    locations: Iterable[Location],
    *,
    delay_seconds: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Dict[str, GeocodedLocation]:
    """Geocode ``locations`` in order, keyed by their address query.

    Cached queries are answered without waiting. Every other lookup is
    followed by a ``delay_seconds`` pause to stay inside Nominatim's one
    request per second policy. Failures are left out of the result.
    """
    results: Dict[str, GeocodedLocation] = {}
    for location in locations:
        query = build_address_query(location)
        if query is None:
            continue

        entry = client.cache.get(query)
        if entry is not None:
            if entry.result is not None:
                results[query] = entry.result
            continue

        result = await client.resolve(location)
        if result is not None:
            results[query] = result
        if not location.has_coordinates:
            await sleep(delay_seconds)
    return results
