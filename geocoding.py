"""Mapbox client for the location picker and route preview.

Talks to the forward-geocoding and driving-directions endpoints and returns
normalized dicts. Coordinates are (lng, lat) like Mapbox's own.
"""
import logging
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

import config
from errors import GeocodingError
from matching import haversine_km

logger = logging.getLogger(__name__)

LngLat = Tuple[float, float]

INDIAN_STATES = [
    "andhra pradesh", "arunachal pradesh", "assam", "bihar", "chhattisgarh", "goa",
    "gujarat", "haryana", "himachal pradesh", "jharkhand", "karnataka", "kerala",
    "madhya pradesh", "maharashtra", "manipur", "meghalaya", "mizoram", "nagaland",
    "odisha", "punjab", "rajasthan", "sikkim", "tamil nadu", "telangana", "tripura",
    "uttar pradesh", "uttarakhand", "west bengal", "delhi", "chandigarh", "puducherry",
]

MAJOR_CITIES = [
    "mumbai", "delhi", "bangalore", "hyderabad", "chennai", "kolkata", "pune",
    "ahmedabad", "jaipur", "lucknow", "kanpur", "nagpur", "indore", "thane",
    "bhopal", "visakhapatnam", "patna", "vadodara", "ghaziabad", "ludhiana",
]

CATEGORY_PRIORITY = {
    "interstate": {"state": 1, "city": 2, "place": 3, "locality": 4, "neighborhood": 5, "poi": 6, "address": 7},
    "intercity": {"city": 1, "place": 2, "locality": 3, "state": 4, "neighborhood": 5, "poi": 6, "address": 7},
}


def classify_query(query: str) -> Dict[str, str]:
    """Pick the search level, place types and proximity bias for a query."""
    lower = query.lower()
    if any(state in lower for state in INDIAN_STATES):
        return {"level": "interstate", "types": "region,place", "proximity": "none"}
    if any(city in lower for city in MAJOR_CITIES) or len(query) <= 8:
        return {"level": "intercity", "types": "place,locality,region", "proximity": "india"}
    return {"level": "local", "types": "address,poi,neighborhood,locality,place", "proximity": "user"}


def _category(feature: dict) -> str:
    types = feature.get("place_type") or []
    if "region" in types:
        return "state"
    if "place" in types:
        # major cities carry a wikidata id
        if (feature.get("properties") or {}).get("wikidata"):
            return "city"
        return "place"
    for kind in ("address", "poi", "neighborhood", "locality"):
        if kind in types:
            return kind
    return "place"


def _to_location(feature: dict, level: str) -> dict:
    context = feature.get("context") or []
    state = ""
    for c in context:
        if str(c.get("id", "")).startswith(("region", "place")):
            state = c.get("text", "")
            break
    return {
        "name": feature.get("text") or feature.get("place_name"),
        "fullAddress": feature.get("place_name"),
        "coordinates": feature["geometry"]["coordinates"],
        "placeType": feature.get("place_type") or [],
        "relevance": feature.get("relevance", 0),
        "category": _category(feature),
        "context": ", ".join(c.get("text", "") for c in context),
        "state": state,
        "searchLevel": level,
    }


def _dedupe(locations: List[dict]) -> List[dict]:
    kept = []
    for loc in locations:
        lng, lat = loc["coordinates"]
        if any(abs(k["coordinates"][0] - lng) < 0.001 and abs(k["coordinates"][1] - lat) < 0.001 for k in kept):
            continue
        kept.append(loc)
    return kept


def _fallback_types(level: str, types: str) -> Optional[str]:
    """Broader place types to retry with when a search came back empty."""
    if level == "interstate" and types != "place,locality":
        return "place,locality"
    if types != "place,locality,region":
        return "place,locality,region"
    return None


class MapboxClient:
    def __init__(self, token: Optional[str] = None, base_url: str = config.MAPBOX_BASE_URL,
                 timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token = token if token is not None else config.MAPBOX_TOKEN
        if not self.token:
            raise GeocodingError("Mapbox token not set. Please set MAPBOX_TOKEN.")
        self.http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._cache: Dict[str, Tuple[float, List[dict]]] = {}

    async def aclose(self):
        await self.http.aclose()

    async def _get(self, path: str, params: dict) -> dict:
        params = {**params, "access_token": self.token}
        try:
            response = await self.http.get(path, params=params)
        except httpx.HTTPError as e:
            raise GeocodingError(f"Mapbox request failed: {e}") from e
        if response.status_code != 200:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GeocodingError(f"Mapbox error {response.status_code}: {message}")
        return response.json()

    def _cached(self, key: str) -> Optional[List[dict]]:
        hit = self._cache.get(key)
        if hit and time.monotonic() - hit[0] < config.GEOCODING_CACHE_SECONDS:
            return hit[1]
        return None

    def _remember(self, key: str, locations: List[dict]):
        now = time.monotonic()
        for stale in [k for k, (ts, _) in self._cache.items() if now - ts >= config.GEOCODING_CACHE_SECONDS]:
            del self._cache[stale]
        self._cache.pop(key, None)
        # dicts keep insertion order, so the first keys are the oldest
        while len(self._cache) >= config.GEOCODING_CACHE_MAX_ENTRIES:
            del self._cache[next(iter(self._cache))]
        self._cache[key] = (now, locations)

    async def search_locations(self, query: str, proximity: Optional[LngLat] = None,
                               limit: Optional[int] = None) -> List[dict]:
        """Forward-geocode a free-text place name inside India."""
        if not query or len(query.strip()) < 2:
            return []
        query = query.strip()
        cache_key = f"{query}|{proximity}|{limit}"
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        plan = classify_query(query)
        if limit is None:
            limit = 12 if plan["level"] == "interstate" else 8
        params = {
            "country": config.GEOCODING_COUNTRY,
            "types": plan["types"],
            "language": "en",
            "limit": str(limit),
            "autocomplete": "true",
            "bbox": config.GEOCODING_BBOX,
        }
        if plan["proximity"] == "user" and proximity:
            params["proximity"] = f"{proximity[0]},{proximity[1]}"
        elif plan["proximity"] == "india":
            params["proximity"] = config.GEOCODING_CENTER

        path = f"/geocoding/v5/mapbox.places/{quote(query)}.json"
        features = (await self._get(path, params)).get("features") or []
        if not features:
            broader = _fallback_types(plan["level"], plan["types"])
            if broader:
                logger.info("no results for %r with types=%s, retrying with %s", query, plan["types"], broader)
                features = (await self._get(path, {**params, "types": broader})).get("features") or []
        locations = [_to_location(f, plan["level"]) for f in features]

        lowered = query.lower()
        priority = CATEGORY_PRIORITY.get(plan["level"], {})
        locations.sort(key=lambda loc: (
            0 if loc["name"].lower().startswith(lowered) else 1,
            priority.get(loc["category"], 8) if priority else 0,
            -loc["relevance"],
        ))
        locations = _dedupe(locations)[:limit]
        self._remember(cache_key, locations)
        logger.info("geocoded %r level=%s results=%d", query, plan["level"], len(locations))
        return locations

    async def directions(self, origin: LngLat, destination: LngLat) -> dict:
        """Driving route between two points: distance km, duration minutes, straight-line km."""
        coords = f"{origin[0]},{origin[1]};{destination[0]},{destination[1]}"
        data = await self._get(f"/directions/v5/mapbox/driving/{coords}", {"overview": "false"})
        routes = data.get("routes") or []
        if not routes:
            raise GeocodingError(f"No route found: {data.get('message', data.get('code', 'unknown'))}")
        route = routes[0]
        return {
            "distance_km": round(route["distance"] / 1000, 1),
            "duration_min": round(route["duration"] / 60),
            "straight_line_km": round(haversine_km((origin[1], origin[0]), (destination[1], destination[0])), 1),
        }


_client = None


def get_client() -> MapboxClient:
    global _client
    if _client is None:
        _client = MapboxClient()
    return _client
