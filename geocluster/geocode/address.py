"""Canonical address queries used for lookups and as cache keys."""
from __future__ import annotations

from typing import List, Optional

from geocluster.models import Location, MapRecord


def build_address_query(location: Location) -> Optional[str]:
    """Join the non-empty address parts in a fixed order.

    Returns None when the location has no street, city, state or postcode,
    in which case it must not be geocoded.
    """
    parts: List[str] = []
    for value in (location.address_one, location.city, location.state, location.postcode):
        if value and value.strip():
            parts.append(value.strip())
    if not parts:
        return None
    return ", ".join(parts)


def has_map_location(record: MapRecord) -> bool:
    """Return True when the record can be placed on the map."""
    location = record.location
    if location is None:
        return False
    if location.has_coordinates:
        return True
    return build_address_query(location) is not None
