import asyncio

import httpx

from geocluster.geocode.cache import GeocodeCache
from geocluster.geocode.client import GeocodingClient
from geocluster.models import GeocodedLocation
from geocluster.observability.metrics import MetricsRegistry

from conftest import NominatimStub, make_client, make_location

PITTSBURGH = [{"lat": "40.4406", "lon": "-79.9959", "display_name": "Pittsburgh, Allegheny County"}]


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, location_id, lat, lng, *, name=""):
        self.calls.append((location_id, lat, lng))


def test_existing_coordinates_skip_cache_and_network(stub):
    cache = GeocodeCache()
    client = make_client(stub, cache=cache)
    location = make_location(city="Pittsburgh", latitude=40.1, longitude=-80.2)

    result = asyncio.run(client.resolve(location))

    assert result == GeocodedLocation(40.1, -80.2, "Pittsburgh")
    assert stub.queries == []
    assert len(cache) == 0


def test_unresolvable_location_returns_none(stub):
    client = make_client(stub)
    assert asyncio.run(client.resolve(make_location())) is None
    assert stub.queries == []


def test_geocodes_and_caches_positive_result():
    stub = NominatimStub({"Pittsburgh, PA": PITTSBURGH})
    cache = GeocodeCache()
    notifier = RecordingNotifier()
    client = make_client(stub, cache=cache, notifier=notifier)
    location = make_location(5, city="Pittsburgh", state="PA")

    async def _run():
        first = await client.resolve(location)
        second = await client.resolve(location)
        return first, second

    first, second = asyncio.run(_run())

    assert (first.lat, first.lng) == (40.4406, -79.9959)
    assert first.address == "Pittsburgh, PA"
    assert first.label == "Pittsburgh, Allegheny County"
    assert second == first
    assert stub.queries == ["Pittsburgh, PA"]
    assert stub.user_agents == ["Arcane-City-Events/1.0"]
    assert notifier.calls == [(5, 40.4406, -79.9959)]
    assert not cache.get("Pittsburgh, PA").negative


def test_empty_result_is_cached_negative():
    stub = NominatimStub()
    metrics = MetricsRegistry()
    client = make_client(stub, metrics=metrics)
    location = make_location(city="Nonexistent City")

    async def _run():
        return await client.resolve(location), await client.resolve(location)

    assert asyncio.run(_run()) == (None, None)
    assert stub.queries == ["Nonexistent City"]
    assert metrics.get("geocode_empty") == 1
    assert metrics.get("geocode_cache_hits") == 1


def test_error_status_is_cached_negative():
    stub = NominatimStub(status=503)
    client = make_client(stub)
    location = make_location(city="Pittsburgh")

    async def _run():
        return await client.resolve(location), await client.resolve(location)

    assert asyncio.run(_run()) == (None, None)
    assert len(stub.queries) == 1
    assert client.cache.get("Pittsburgh").negative


def test_transport_error_returns_none():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    client = make_client(handler)
    assert asyncio.run(client.resolve(make_location(city="Pittsburgh"))) is None
    assert client.cache.get("Pittsburgh").negative


def test_malformed_coordinates_are_a_failed_lookup():
    stub = NominatimStub(
        {
            "Garbage": [{"lat": "north-ish", "lon": "-79.9"}],
            "Missing": [{"display_name": "somewhere"}],
            "Infinite": [{"lat": "nan", "lon": "-79.9"}],
        }
    )
    notifier = RecordingNotifier()
    client = make_client(stub, notifier=notifier)

    async def _run():
        return [await client.resolve(make_location(city=city)) for city in ("Garbage", "Missing", "Infinite")]

    assert asyncio.run(_run()) == [None, None, None]
    assert notifier.calls == []
    assert all(client.cache.get(city).negative for city in ("Garbage", "Missing", "Infinite"))


def test_non_json_body_is_a_failed_lookup():
    def handler(request):
        return httpx.Response(200, text="<html>rate limited</html>", request=request)

    client = make_client(handler)
    assert asyncio.run(client.resolve(make_location(city="Pittsburgh"))) is None


def test_network_calls_are_spaced_by_min_interval():
    stub = NominatimStub({"A": PITTSBURGH, "B": PITTSBURGH})
    now = [100.0]
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        now[0] += seconds

    client = GeocodingClient(
        http=httpx.AsyncClient(transport=httpx.MockTransport(stub)),
        cache=GeocodeCache(),
        min_interval=1.0,
        clock=lambda: now[0],
        sleep=fake_sleep,
    )

    async def _run():
        await client.resolve(make_location(1, city="A"))
        now[0] += 0.25
        await client.resolve(make_location(2, city="B"))
        await client.resolve(make_location(3, city="A"))

    asyncio.run(_run())
    assert sleeps == [0.75]
    assert stub.queries == ["A", "B"]
