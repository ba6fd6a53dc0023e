"""Failures raised while talking to the geocoding service."""
from __future__ import annotations


class GeocodingError(RuntimeError):
    """Base class for lookups that produced no usable coordinate."""

    def __init__(self, query: str, reason: str) -> None:
        super().__init__(f"{reason} for {query!r}")
        self.query = query
        self.reason = reason


class GeocodingTransportError(GeocodingError):
    """Raised on network errors and non-success HTTP statuses."""


class GeocodingEmptyResult(GeocodingError):
    """Raised when the service answered with no candidates."""


class GeocodingMalformedResult(GeocodingError):
    """Raised when a candidate's coordinates cannot be parsed."""
