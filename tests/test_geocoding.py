"""
Mapbox client and location endpoint tests.
The provider is replaced with httpx.MockTransport, nothing leaves the process.
"""
import asyncio

import httpx
import pytest

import config
import geocoding
from conftest import async_client
from errors import GeocodingError
from geocoding import MapboxClient, classify_query


def feature(text, lng, lat, place_type="place", relevance=0.9, wikidata=None, region="Punjab"):
    return {
        "text": text,
        "place_name": f"{text}, {region}, India",
        "geometry": {"coordinates": [lng, lat]},
        "place_type": [place_type],
        "relevance": relevance,
        "properties": {"wikidata": wikidata} if wikidata else {},
        "context": [{"id": "region.123", "text": region}, {"id": "country.1", "text": "India"}],
    }


def mock_client(handler):
    return MapboxClient(token="pk.test", transport=httpx.MockTransport(handler))


def one_feature(request):
    name = request.url.path.rsplit("/", 1)[-1][:-len(".json")]
    return httpx.Response(200, json={"features": [feature(name, 75.85, 30.90)]})


# ────────────────────────── query classification ────────────────────────────

def test_classify_interstate_by_state_name():
    assert classify_query("Punjab")["level"] == "interstate"
    assert classify_query("Mohali, Punjab")["level"] == "interstate"


def test_classify_intercity_by_city_or_short_query():
    assert classify_query("Mumbai Central")["level"] == "intercity"
    assert classify_query("Landran")["level"] == "intercity"


def test_classify_local():
    plan = classify_query("Chitkara University Rajpura")
    assert plan["level"] == "local"
    assert plan["proximity"] == "user"


# ────────────────────────── client ──────────────────────────────────────────

def test_client_requires_token(monkeypatch):
    monkeypatch.setattr(config, "MAPBOX_TOKEN", None)
    with pytest.raises(GeocodingError):
        MapboxClient()


@pytest.mark.asyncio
async def test_search_sends_country_and_bbox():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"features": [feature("Mohali", 76.71, 30.70, wikidata="Q1")]})

    results = await mock_client(handler).search_locations("Mohali")
    req = seen[0]
    assert req.url.path == "/geocoding/v5/mapbox.places/Mohali.json"
    assert req.url.params["country"] == "IN"
    assert req.url.params["bbox"] == config.GEOCODING_BBOX
    assert req.url.params["proximity"] == config.GEOCODING_CENTER
    assert req.url.params["access_token"] == "pk.test"
    assert results[0]["name"] == "Mohali"
    assert results[0]["category"] == "city"
    assert results[0]["state"] == "Punjab"
    assert results[0]["coordinates"] == [76.71, 30.70]


@pytest.mark.asyncio
async def test_search_short_query_skips_provider():
    def handler(request):
        raise AssertionError("provider should not be called")

    assert await mock_client(handler).search_locations("a") == []


@pytest.mark.asyncio
async def test_search_dedupes_and_prefers_prefix_matches():
    def handler(request):
        return httpx.Response(200, json={"features": [
            feature("Old Kharar Road", 76.6400, 30.7400, place_type="address", relevance=1.0),
            feature("Kharar", 76.6460, 30.7460, relevance=0.8),
            feature("Kharar Bus Stand", 76.64605, 30.74605, place_type="poi", relevance=0.7),
        ]})

    results = await mock_client(handler).search_locations("Kharar")
    assert [r["name"] for r in results] == ["Kharar", "Old Kharar Road"]


@pytest.mark.asyncio
async def test_empty_local_search_retries_with_broader_types():
    types = []

    def handler(request):
        types.append(request.url.params["types"])
        if len(types) == 1:
            return httpx.Response(200, json={"features": []})
        return httpx.Response(200, json={"features": [feature("Rajpura", 76.59, 30.48)]})

    results = await mock_client(handler).search_locations("Chitkara University Rajpura")
    assert types == ["address,poi,neighborhood,locality,place", "place,locality,region"]
    assert results[0]["name"] == "Rajpura"


@pytest.mark.asyncio
async def test_empty_interstate_search_retries_with_places():
    types = []

    def handler(request):
        types.append(request.url.params["types"])
        return httpx.Response(200, json={"features": []})

    assert await mock_client(handler).search_locations("Punjab") == []
    assert types == ["region,place", "place,locality"]


@pytest.mark.asyncio
async def test_empty_intercity_search_does_not_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"features": []})

    assert await mock_client(handler).search_locations("Ludhiana") == []
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_search_results_are_cached():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"features": [feature("Ludhiana", 75.85, 30.90)]})

    client = mock_client(handler)
    await client.search_locations("Ludhiana")
    await client.search_locations("Ludhiana")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_cache_is_bounded(monkeypatch):
    monkeypatch.setattr(config, "GEOCODING_CACHE_MAX_ENTRIES", 3)
    client = mock_client(one_feature)
    for name in ("Ludhiana", "Patiala", "Bathinda", "Amritsar", "Jalandhar"):
        await client.search_locations(name)
    assert len(client._cache) == 3
    assert [k.split("|")[0] for k in client._cache] == ["Bathinda", "Amritsar", "Jalandhar"]


@pytest.mark.asyncio
async def test_cache_drops_expired_entries(monkeypatch):
    monkeypatch.setattr(config, "GEOCODING_CACHE_SECONDS", 0)
    client = mock_client(one_feature)
    for name in ("Ludhiana", "Patiala", "Bathinda"):
        await client.search_locations(name)
    assert len(client._cache) == 1


@pytest.mark.asyncio
async def test_search_provider_error():
    def handler(request):
        return httpx.Response(401, json={"message": "Not Authorized - Invalid Token"})

    with pytest.raises(GeocodingError, match="Invalid Token"):
        await mock_client(handler).search_locations("Ludhiana")


@pytest.mark.asyncio
async def test_search_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GeocodingError):
        await mock_client(handler).search_locations("Ludhiana")


@pytest.mark.asyncio
async def test_directions():
    def handler(request):
        assert request.url.path == "/directions/v5/mapbox/driving/77.209,28.6139;76.7794,30.7333"
        return httpx.Response(200, json={"routes": [{"distance": 244630.0, "duration": 15300.0}]})

    route = await mock_client(handler).directions((77.209, 28.6139), (76.7794, 30.7333))
    assert route["distance_km"] == 244.6
    assert route["duration_min"] == 255
    assert 230 < route["straight_line_km"] < 250


@pytest.mark.asyncio
async def test_directions_no_route():
    def handler(request):
        return httpx.Response(200, json={"code": "NoRoute", "routes": []})

    with pytest.raises(GeocodingError, match="NoRoute"):
        await mock_client(handler).directions((77.2, 28.6), (72.8, 19.0))


# ────────────────────────── endpoints ───────────────────────────────────────

@pytest.fixture
def mapbox(monkeypatch):
    def install(handler):
        monkeypatch.setattr(config, "MAPBOX_TOKEN", "pk.test")
        monkeypatch.setattr(geocoding, "_client", mock_client(handler))

    return install


@pytest.mark.asyncio
async def test_locations_unconfigured(monkeypatch):
    monkeypatch.setattr(config, "MAPBOX_TOKEN", None)
    async with await async_client() as client:
        resp = await client.get("/api/locations/search?q=Delhi")
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_locations_search_endpoint(mapbox):
    mapbox(lambda request: httpx.Response(200, json={"features": [feature("Jaipur", 75.78, 26.91, region="Rajasthan")]}))
    async with await async_client() as client:
        resp = await client.get("/api/locations/search?q=Jaipur")
    assert resp.status_code == 200
    assert resp.json()["data"][0]["fullAddress"] == "Jaipur, Rajasthan, India"


@pytest.mark.asyncio
async def test_slow_provider_does_not_block_other_requests(mapbox):
    async def slow(request):
        await asyncio.sleep(0.3)
        return httpx.Response(200, json={"features": [feature("Jaipur", 75.78, 26.91)]})

    mapbox(slow)
    finished = []
    async with await async_client() as client:
        async def search():
            await client.get("/api/locations/search?q=Jaipur")
            finished.append("search")

        async def health():
            await asyncio.sleep(0.05)
            await client.get("/api/health")
            finished.append("health")

        await asyncio.gather(search(), health())
    assert finished == ["health", "search"]


@pytest.mark.asyncio
async def test_locations_search_provider_failure_is_502(mapbox):
    mapbox(lambda request: httpx.Response(500, text="upstream down"))
    async with await async_client() as client:
        resp = await client.get("/api/locations/search?q=Jaipur")
    assert resp.status_code == 502
    assert resp.json()["error"] == "Location search failed"


@pytest.mark.asyncio
async def test_directions_endpoint(mapbox):
    mapbox(lambda request: httpx.Response(200, json={"routes": [{"distance": 12000, "duration": 1800}]}))
    async with await async_client() as client:
        ok = await client.get("/api/locations/directions?from=76.71,30.70&to=76.78,30.73")
        missing = await client.get("/api/locations/directions?from=76.71,30.70")
        garbled = await client.get("/api/locations/directions?from=north&to=76.78,30.73")
    assert ok.json()["data"]["distance_km"] == 12.0
    assert ok.json()["data"]["duration_min"] == 30
    assert missing.status_code == 400
    assert garbled.status_code == 400
