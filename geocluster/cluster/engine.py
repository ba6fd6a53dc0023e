"""Group resolved records into map markers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional

from geocluster.models import GeocodedLocation, MapRecord


class Resolution(NamedTuple):
    """A record paired with the coordinate it resolved to, if any."""

    record: MapRecord
    coordinate: Optional[GeocodedLocation]


def coordinate_key(lat: float, lng: float) -> str:
    """Exact ``"lat,lng"`` key; no rounding or bucketing."""
    return f"{float(lat)!r},{float(lng)!r}"


@dataclass
class Marker:
    """One map point holding every record at that exact coordinate."""

    lat: float
    lng: float
    records: List[MapRecord] = field(default_factory=list)

    @property
    def key(self) -> str:
        return coordinate_key(self.lat, self.lng)

    def to_dict(self) -> Dict[str, object]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "count": len(self.records),
            "records": [record.model_dump(mode="json") for record in self.records],
        }


class MarkerMap:
    """Ordered, incrementally built set of markers keyed by coordinate."""

    def __init__(self) -> None:
        self._markers: Dict[str, Marker] = {}

    def add(self, record: MapRecord, coordinate: Optional[GeocodedLocation]) -> Optional[Marker]:
        """Fold ``record`` into its marker; records without a coordinate are dropped."""
        if coordinate is None:
            return None
        key = coordinate_key(coordinate.lat, coordinate.lng)
        marker = self._markers.get(key)
        if marker is None:
            marker = Marker(lat=coordinate.lat, lng=coordinate.lng)
            self._markers[key] = marker
        marker.records.append(record)
        return marker

    def markers(self) -> List[Marker]:
        """Copies of the current markers, safe to hand to consumers."""
        return [Marker(m.lat, m.lng, list(m.records)) for m in self._markers.values()]

    def __len__(self) -> int:
        return len(self._markers)


def cluster_markers(resolutions: Iterable[Resolution]) -> List[Marker]:
    """Build the marker list for a whole batch in one pass."""
    marker_map = MarkerMap()
    for record, coordinate in resolutions:
        marker_map.add(record, coordinate)
    return marker_map.markers()
