"""Progressive resolution of a batch of records into map markers."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import structlog

from geocluster.cluster.engine import Marker, MarkerMap
from geocluster.geocode.client import known_coordinates
from geocluster.models import GeocodedLocation, Location, MapRecord
from geocluster.observability.metrics import MetricsRegistry

LOGGER = structlog.get_logger(__name__)


class Resolver(Protocol):
    async def resolve(self, location: Location) -> Optional[GeocodedLocation]:
        ...


class ResolutionState(str, Enum):
    IDLE = "idle"
    SEEDING = "seeding"
    RESOLVING = "resolving"
    READY = "ready"
    CANCELLED = "cancelled"


class Liveness:
    """Caller-owned flag telling the orchestrator whether anyone is listening."""

    def __init__(self) -> None:
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def cancel(self) -> None:
        self._alive = False


@dataclass(frozen=True)
class Progress:
    resolved_count: int = 0
    total_to_resolve: int = 0


@dataclass(frozen=True)
class MapSnapshot:
    """Everything a consumer needs to redraw the map."""

    markers: List[Marker] = field(default_factory=list)
    progress: Progress = field(default_factory=Progress)
    state: ResolutionState = ResolutionState.IDLE

    @property
    def resolving(self) -> bool:
        return self.state in (ResolutionState.SEEDING, ResolutionState.RESOLVING)

    @property
    def renderable(self) -> bool:
        return bool(self.markers) or self.state is ResolutionState.READY


Publisher = Callable[[MapSnapshot], None]


def partition_records(
    records: Sequence[MapRecord],
) -> Tuple[List[Tuple[MapRecord, GeocodedLocation]], List[MapRecord]]:
    """Split records into those with known coordinates and the rest."""
    seeded: List[Tuple[MapRecord, GeocodedLocation]] = []
    remainder: List[MapRecord] = []
    for record in records:
        coordinate = known_coordinates(record.location) if record.location is not None else None
        if coordinate is not None:
            seeded.append((record, coordinate))
        else:
            remainder.append(record)
    return seeded, remainder


@dataclass
class _Batch:
    """Mutable state of a single ``run``; never shared between runs."""

    liveness: Liveness
    markers: MarkerMap = field(default_factory=MarkerMap)
    progress: Progress = field(default_factory=Progress)
    state: ResolutionState = ResolutionState.SEEDING
    snapshot: Optional[MapSnapshot] = None


class ResolutionOrchestrator:
    """Drives batches from seeding to a complete marker list.

    Records lacking coordinates are geocoded strictly one after another.
    A snapshot is published after seeding and after every attempt, unless
    the caller's ``Liveness`` has been cancelled, in which case nothing
    further is published and in-flight results are discarded. The
    ``state``, ``progress`` and ``snapshot`` properties describe the most
    recently submitted batch; a superseded batch cannot touch them.
    """

    def __init__(
        self,
        resolver: Resolver,
        *,
        publish: Optional[Publisher] = None,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._resolver = resolver
        self._publish = publish
        self._metrics = metrics or MetricsRegistry()
        self._current: Optional[_Batch] = None
        self._snapshot = MapSnapshot()

    @property
    def state(self) -> ResolutionState:
        if self._current is None:
            return ResolutionState.IDLE
        return self._current.state

    @property
    def progress(self) -> Progress:
        if self._current is None:
            return Progress()
        return self._current.progress

    @property
    def snapshot(self) -> MapSnapshot:
        """The most recently published snapshot of the current batch."""
        return self._snapshot

    def start(self, records: Sequence[MapRecord], liveness: Liveness) -> asyncio.Task:
        """Run the batch in the background of the current event loop."""
        return asyncio.get_running_loop().create_task(self.run(records, liveness))

    async def run(self, records: Sequence[MapRecord], liveness: Optional[Liveness] = None) -> Optional[MapSnapshot]:
        """Resolve ``records`` and return the final snapshot, or None if cancelled."""
        batch = _Batch(liveness=liveness or Liveness())
        self._current = batch
        self._snapshot = MapSnapshot()

        seeded, remainder = partition_records(records)
        for record, coordinate in seeded:
            batch.markers.add(record, coordinate)
        batch.progress = Progress(0, len(remainder))
        batch.state = ResolutionState.RESOLVING if remainder else ResolutionState.READY
        if not self._publish_if_alive(batch):
            return None
        LOGGER.info("batch_seeded", seeded=len(seeded), to_resolve=len(remainder), markers=len(batch.markers))

        for index, record in enumerate(remainder, start=1):
            if not batch.liveness.alive:
                return self._cancel(batch)
            coordinate = await self._resolve(record)
            if not batch.liveness.alive:
                return self._cancel(batch)
            batch.markers.add(record, coordinate)
            batch.progress = Progress(index, len(remainder))
            if index == len(remainder):
                batch.state = ResolutionState.READY
            if not self._publish_if_alive(batch):
                return None

        LOGGER.info("batch_ready", markers=len(batch.markers), resolved=batch.progress.resolved_count)
        return batch.snapshot

    async def _resolve(self, record: MapRecord) -> Optional[GeocodedLocation]:
        if record.location is None:
            return None
        try:
            return await self._resolver.resolve(record.location)
        except Exception:
            LOGGER.exception("resolve_crashed", record_id=record.id, location_id=record.location.id)
            return None

    def _publish_if_alive(self, batch: _Batch) -> bool:
        if not batch.liveness.alive:
            self._cancel(batch)
            return False
        batch.snapshot = MapSnapshot(
            markers=batch.markers.markers(),
            progress=batch.progress,
            state=batch.state,
        )
        if batch is self._current:
            self._snapshot = batch.snapshot
        self._metrics.incr("markers_published")
        if self._publish is not None:
            self._publish(batch.snapshot)
        return True

    def _cancel(self, batch: _Batch) -> None:
        if batch.state is not ResolutionState.CANCELLED:
            LOGGER.info(
                "batch_cancelled",
                resolved=batch.progress.resolved_count,
                total=batch.progress.total_to_resolve,
            )
        batch.state = ResolutionState.CANCELLED
