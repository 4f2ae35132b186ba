"""Location picker and route preview, proxied to Mapbox."""
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse

import config
import geocoding
from errors import ApiError, GeocodingError, bad_request
from responses import ok

logger = logging.getLogger(__name__)


def _client() -> geocoding.MapboxClient:
    if not config.MAPBOX_TOKEN:
        raise ApiError(503, "Geocoding is not configured")
    return geocoding.get_client()


def _lng_lat(value: str, name: str):
    try:
        lng, lat = (float(part) for part in value.split(","))
    except (AttributeError, ValueError):
        raise bad_request(f"Invalid {name}", "Expected lng,lat")
    return lng, lat


async def search_locations(request: Request):
    query = request.query_params.get("q", "")
    proximity = request.query_params.get("proximity")
    client = _client()
    try:
        results = await client.search_locations(query, proximity=_lng_lat(proximity, "proximity") if proximity else None)
    except GeocodingError as e:
        logger.error("location search failed for %r: %s", query, e)
        return JSONResponse({"success": False, "error": "Location search failed", "details": str(e)}, status_code=502)
    return ok(results)


async def directions(request: Request):
    origin = request.query_params.get("from")
    destination = request.query_params.get("to")
    if not origin or not destination:
        raise bad_request("Missing required fields: from, to")
    client = _client()
    try:
        route = await client.directions(_lng_lat(origin, "from"), _lng_lat(destination, "to"))
    except GeocodingError as e:
        logger.error("directions failed %s -> %s: %s", origin, destination, e)
        return JSONResponse({"success": False, "error": "Directions failed", "details": str(e)}, status_code=502)
    return ok(route)
