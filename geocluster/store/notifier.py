"""Background write-back of newly discovered coordinates."""
from __future__ import annotations

import asyncio
from typing import Optional, Set

import structlog

from geocluster.models import Location
from geocluster.observability.metrics import MetricsRegistry
from geocluster.store.location_store import LocationStore

LOGGER = structlog.get_logger(__name__)


class CoordinateNotifier:
    """Fires coordinate updates at the location store without waiting.

    Updates are attempted once. Failures are logged and counted, never
    raised to whoever called ``notify``.
    """

    def __init__(self, store: LocationStore, *, metrics: Optional[MetricsRegistry] = None) -> None:
        self._store = store
        self._metrics = metrics or MetricsRegistry()
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def notify(self, location_id: int, lat: float, lng: float, *, name: str = "") -> asyncio.Task:
        """Schedule the update on the running loop and return immediately."""
        task = asyncio.get_running_loop().create_task(self._save(location_id, lat, lng, name))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _save(self, location_id: int, lat: float, lng: float, name: str) -> Optional[Location]:
        try:
            updated = await self._store.update_coordinates(location_id, lat, lng)
        except Exception as exc:
            self._metrics.incr("persist_failures")
            LOGGER.warning("coordinates_not_saved", location_id=location_id, reason=str(exc))
            return None
        self._metrics.incr("coordinates_saved")
        LOGGER.info("coordinates_saved", location_id=location_id, name=name, lat=lat, lng=lng)
        return updated

    async def drain(self) -> None:
        """Wait for outstanding updates; used at shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
