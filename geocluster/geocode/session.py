"""Factories wiring the geocoding client to its HTTP session."""
from __future__ import annotations

import contextlib
import os
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from geocluster.geocode.cache import GeocodeCache, default_cache
from geocluster.geocode.client import GeocodingClient
from geocluster.observability.metrics import MetricsRegistry
from geocluster.store.location_store import LocationStore
from geocluster.store.notifier import CoordinateNotifier

API_TOKEN_ENV = "GEOCLUSTER_API_TOKEN"


@contextlib.asynccontextmanager
async def create_geocoding_client(
    settings: Dict[str, Dict[str, Any]],
    *,
    cache: Optional[GeocodeCache] = None,
    metrics: Optional[MetricsRegistry] = None,
) -> AsyncIterator[GeocodingClient]:
    """Yield a configured `GeocodingClient` for the duration of the context.

    Coordinate write-back is enabled only when ``store.api_base_url`` is set;
    pending write-backs are awaited before the session closes.
    """
    geocoder = settings["geocoder"]
    store_cfg = settings.get("store", {})
    metrics = metrics or MetricsRegistry()
    headers = {"User-Agent": geocoder["user_agent"]}
    async with httpx.AsyncClient(headers=headers, timeout=geocoder["timeout_seconds"]) as http:
        notifier: Optional[CoordinateNotifier] = None
        if store_cfg.get("api_base_url"):
            store = LocationStore(
                http=http,
                base_url=store_cfg["api_base_url"],
                token=os.getenv(API_TOKEN_ENV),
                timeout=float(store_cfg.get("timeout_seconds", 10.0)),
            )
            notifier = CoordinateNotifier(store, metrics=metrics)
        client = GeocodingClient(
            http=http,
            cache=cache if cache is not None else default_cache(),
            notifier=notifier,
            base_url=geocoder["base_url"],
            user_agent=geocoder["user_agent"],
            min_interval=float(geocoder["min_interval_seconds"]),
            metrics=metrics,
        )
        try:
            yield client
        finally:
            if notifier is not None:
                await notifier.drain()
