"""Per-run counters for geocoding and marker publication."""
from __future__ import annotations

import contextlib
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator

import orjson
import structlog

LOGGER = structlog.get_logger(__name__)

COUNTERS = (
    "geocode_requests",
    "geocode_cache_hits",
    "geocode_failures",
    "geocode_empty",
    "coordinates_saved",
    "persist_failures",
    "markers_published",
    "run_duration_ms",
)


class MetricsRegistry:
    """Counters shared by the client, notifier and orchestrator of one run."""

    def __init__(self) -> None:
        self._counters: Counter[str] = Counter(dict.fromkeys(COUNTERS, 0))

    def incr(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def get(self, name: str) -> int:
        return self._counters[name]

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counters)

    @contextlib.contextmanager
    def timed(self, name: str) -> Iterator[None]:
        """Add the block's wall time, in milliseconds, to ``name``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            self.incr(name, elapsed_ms)
            LOGGER.info("timer_stop", metric=name, duration_ms=elapsed_ms)

    def export(self, *, path: Path, run_id: str) -> Path:
        """Write the run's counters as JSON next to earlier runs."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "run_id": run_id,
            "generated_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "counters": self.snapshot(),
        }
        path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        return path
