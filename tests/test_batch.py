import asyncio

from conftest import NominatimStub, make_client, make_location

from geocluster.geocode.batch import geocode_batch

PITTSBURGH = [{"lat": "40.4406", "lon": "-79.9959", "display_name": "Pittsburgh"}]


def test_batch_waits_only_after_network_lookups():
    stub = NominatimStub({"Pittsburgh, PA": PITTSBURGH})
    client = make_client(stub)
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    locations = [
        make_location(1, city="Pittsburgh", state="PA"),
        make_location(2, city="Pittsburgh", state="PA"),
        make_location(3, city="Nowhere"),
        make_location(4),
        make_location(5, city="Erie", latitude=42.1, longitude=-80.1),
    ]

    results = asyncio.run(geocode_batch(client, locations, delay_seconds=1.0, sleep=fake_sleep))

    assert list(results) == ["Pittsburgh, PA", "Erie"]
    assert results["Pittsburgh, PA"].lat == 40.4406
    assert results["Erie"].lng == -80.1
    assert stub.queries == ["Pittsburgh, PA", "Nowhere"]
    assert sleeps == [1.0, 1.0]


def test_batch_skips_cached_failures():
    stub = NominatimStub()
    client = make_client(stub)
    client.cache.put("Nowhere", None)

    results = asyncio.run(geocode_batch(client, [make_location(1, city="Nowhere")], delay_seconds=0))

    assert results == {}
    assert stub.queries == []
