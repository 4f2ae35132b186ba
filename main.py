from datetime import datetime, timezone
import contextlib
import logging

from sqlalchemy.exc import SQLAlchemyError
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

import accounts
import config
import documents
import locations
import rides
from db import init_db
from errors import ApiError, StorageError

config.configure_logging()
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app):
    init_db()
    yield


async def health(request: Request):
    return JSONResponse({
        "success": True,
        "data": {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()},
    })


async def api_error(request: Request, exc: ApiError):
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


async def http_error(request: Request, exc: HTTPException):
    error = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse({"success": False, "error": error}, status_code=exc.status_code, headers=exc.headers)


async def database_error(request: Request, exc: SQLAlchemyError):
    logger.error("database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        {"success": False, "error": "Internal server error", "details": str(exc)},
        status_code=500,
    )


async def storage_error(request: Request, exc: StorageError):
    logger.error("storage error on %s: %s", request.url.path, exc)
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


async def unexpected_error(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        {"success": False, "error": "Internal server error", "details": str(exc)},
        status_code=500,
    )


routes = [
    Route("/api/health", health, methods=["GET"]),
    Route("/api/user-profile", accounts.user_profile, methods=["GET", "PUT"]),
    Route("/api/check-verification", accounts.check_verification, methods=["GET"]),
    Route("/api/admin", accounts.admin, methods=["POST"]),
    Route("/api/get-upload-url", documents.get_upload_url, methods=["POST"]),
    Route("/api/upload-document", documents.upload_document, methods=["POST"]),
    Route("/api/locations/search", locations.search_locations, methods=["GET"]),
    Route("/api/locations/directions", locations.directions, methods=["GET"]),
    Route("/api/rides", rides.publish_ride, methods=["POST"]),
    Route("/api/rides/list", rides.list_rides, methods=["GET"]),
    Route("/api/rides/driver", rides.driver_rides, methods=["GET"]),
    Route("/api/rides/delete", rides.delete_ride, methods=["DELETE"]),
    Route("/api/rides/search-enhanced", rides.search_enhanced, methods=["POST"]),
    Route("/api/rides/search-postgis", rides.search_postgis, methods=["POST"]),
    Route("/api/rides/{ride_id}", rides.get_ride, methods=["GET"]),
]

middleware = [
    Middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    ),
]

exception_handlers = {
    ApiError: api_error,
    HTTPException: http_error,
    SQLAlchemyError: database_error,
    StorageError: storage_error,
    Exception: unexpected_error,
}

app = Starlette(
    debug=False,
    routes=routes,
    middleware=middleware,
    exception_handlers=exception_handlers,
    lifespan=lifespan,
)
