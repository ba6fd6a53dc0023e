"""Models for map records, their locations and resolved coordinates."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Location(BaseModel):
    """A physical place owned by the system of record."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    address_one: Optional[str] = Field(default=None, description="Street address")
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    latitude: Optional[float] = Field(default=None, allow_inf_nan=False)
    longitude: Optional[float] = Field(default=None, allow_inf_nan=False)

    @model_validator(mode="after")
    def _coordinates_paired(self) -> "Location":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be set together")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class MapRecord(BaseModel):
    """A listing (event, venue, series...) that may point at a location.

    Unknown fields are kept so the map layer can render them in popups.
    Event payloads that nest the place under ``venue.primary_location``
    are accepted as well.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    slug: Optional[str] = None
    location: Optional[Location] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_venue_location(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("location") is not None:
            return data
        venue = data.get("venue")
        if isinstance(venue, dict) and venue.get("primary_location"):
            return {**data, "location": venue["primary_location"]}
        return data


@dataclass(frozen=True)
class GeocodedLocation:
    """Represents a resolved coordinate pair."""

    lat: float
    lng: float
    address: str = ""
    label: Optional[str] = None
