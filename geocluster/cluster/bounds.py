"""Viewport helpers for the marker list."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from geocluster.cluster.engine import Marker

# Pittsburgh, used when nothing is on the map yet.
DEFAULT_CENTER: Tuple[float, float] = (40.4406, -79.9959)


@dataclass(frozen=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)


def marker_bounds(markers: Sequence[Marker]) -> Optional[Bounds]:
    """Smallest box containing every marker, or None for an empty map."""
    if not markers:
        return None
    lats = [marker.lat for marker in markers]
    lngs = [marker.lng for marker in markers]
    return Bounds(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))
