import json

from starlette.requests import Request
from starlette.responses import JSONResponse

from errors import bad_request


async def read_json(request: Request) -> dict:
    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except ValueError:
        raise bad_request("Invalid JSON body")
    if not isinstance(payload, dict):
        raise bad_request("JSON body must be an object")
    return payload


def require(payload: dict, *keys: str, details: str = None):
    """400 unless every key is present and truthy."""
    missing = [k for k in keys if not payload.get(k)]
    if missing:
        raise bad_request(f"Missing required fields: {', '.join(missing)}", details)


def ok(data=None, status_code: int = 200, **extra) -> JSONResponse:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return JSONResponse(body, status_code=status_code)
