import httpx
import pytest

from geocluster.geocode.cache import GeocodeCache
from geocluster.geocode.client import GeocodingClient
from geocluster.models import Location, MapRecord


class NominatimStub:
    """Serves canned Nominatim answers keyed by the ``q`` parameter."""

    def __init__(self, answers=None, status=200):
        self.answers = answers or {}
        self.status = status
        self.queries = []
        self.user_agents = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        query = request.url.params["q"]
        self.queries.append(query)
        self.user_agents.append(request.headers.get("User-Agent"))
        if self.status != 200:
            return httpx.Response(self.status, request=request)
        return httpx.Response(200, json=self.answers.get(query, []), request=request)


def make_location(location_id=1, **fields):
    return Location(id=location_id, name=fields.pop("name", f"Venue {location_id}"), **fields)


def make_record(record_id, location=None, **extra):
    return MapRecord(id=record_id, name=f"Event {record_id}", location=location, **extra)


def make_client(stub, *, cache=None, notifier=None, metrics=None):
    http = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return GeocodingClient(
        http=http,
        cache=cache if cache is not None else GeocodeCache(),
        notifier=notifier,
        min_interval=0.0,
        metrics=metrics,
    )


@pytest.fixture
def stub():
    return NominatimStub()
