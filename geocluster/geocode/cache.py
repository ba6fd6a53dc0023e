"""In-process cache of geocoding results, including failed lookups."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from geocluster.models import GeocodedLocation


@dataclass(frozen=True)
class CacheEntry:
    """A cached outcome; ``result`` is None for a remembered failure."""

    result: Optional[GeocodedLocation]

    @property
    def negative(self) -> bool:
        return self.result is None


class GeocodeCache:
    """Maps canonical address queries to their geocoding outcome.

    Entries never expire. Only ``clear`` removes them.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` or None when it was never stored."""
        return self._entries.get(key)

    def put(self, key: str, result: Optional[GeocodedLocation]) -> CacheEntry:
        """Store a positive result, or a negative one when ``result`` is None."""
        entry = CacheEntry(result)
        with self._lock:
            self._entries[key] = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


_default_cache = GeocodeCache()


def default_cache() -> GeocodeCache:
    """Return the cache shared by everything in this process."""
    return _default_cache


def clear_geocode_cache() -> None:
    """Drop every entry from the process-wide cache."""
    _default_cache.clear()
