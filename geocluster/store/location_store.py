"""HTTP client for writing coordinates back to the location API."""
from __future__ import annotations

from typing import Dict, Optional

import httpx
from pydantic import ValidationError

from geocluster.models import Location


class LocationStoreError(RuntimeError):
    """Raised when the location API rejects or fails an update."""


class LocationStoreAuthError(LocationStoreError):
    """Raised on 401/403 responses."""


class LocationStore:
    """Updates location records through ``PUT /locations/{id}``."""

    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def update_coordinates(self, location_id: int, latitude: float, longitude: float) -> Location:
        """Persist the coordinates and return the updated location."""
        url = f"{self._base_url}/locations/{location_id}"
        try:
            response = await self._http.put(
                url,
                json={"latitude": latitude, "longitude": longitude},
                headers=self._headers(),
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise LocationStoreError(f"request to {url} failed: {exc}") from exc

        if response.status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            raise LocationStoreAuthError(f"not authorised to update location {location_id}")
        if not response.is_success:
            raise LocationStoreError(f"location {location_id} update returned {response.status_code}")

        try:
            payload = response.json()
            if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
                payload = payload["data"]
            return Location.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            raise LocationStoreError(f"unexpected payload for location {location_id}: {exc}") from exc
