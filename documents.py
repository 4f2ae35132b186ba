"""Document upload flow: presigned bucket URL, then record the public URL."""
import logging
import math
from datetime import datetime, timezone

from starlette.requests import Request

import config
import storage
from db import get_session
from errors import bad_request, not_found
from models import UserProfile, DriverProfile
from responses import read_json, require, ok

logger = logging.getLogger(__name__)


def _file_size(value):
    """fileSize in bytes; numeric strings count, as browsers sometimes send them."""
    if value is None or value == "":
        return None
    try:
        size = float(value)
    except (TypeError, ValueError):
        size = -1
    if isinstance(value, bool) or not math.isfinite(size) or size < 0:
        raise bad_request("Invalid fileSize", "Expected a size in bytes")
    return size


async def get_upload_url(request: Request):
    payload = await read_json(request)
    require(payload, "user_id", "document_type", "uuid", "filetype")
    file_size = _file_size(payload.get("fileSize"))
    if file_size is not None and file_size > config.MAX_UPLOAD_BYTES:
        raise bad_request("File size exceeds 2MB limit. Please compress your file and try again.")
    filetype = payload["filetype"]
    if filetype not in config.ALLOWED_UPLOAD_TYPES:
        raise bad_request(
            "Invalid file type. Only images (PNG, JPG, JPEG, WEBP, BMP) and PDF files are allowed."
        )

    key = storage.document_key(payload["document_type"], payload["user_id"], payload["uuid"], filetype)
    upload_url = storage.presigned_upload_url(key, filetype)
    logger.info("issued upload url for %s", key)
    return ok({
        "url": storage.public_url(key),
        "uploadUrl": upload_url,
        "key": key,
    })


async def upload_document(request: Request):
    payload = await read_json(request)
    require(payload, "user_id", "document_type", "publicUrl")
    user_id = payload["user_id"]
    document_type = payload["document_type"]
    url = payload["publicUrl"]
    now = datetime.now(timezone.utc)

    with get_session() as session:
        if document_type == "profile":
            profile = session.get(UserProfile, user_id)
            if not profile:
                raise not_found("User not found")
            profile.profile_url = url
            profile.updated_at = now
            session.add(profile)
        elif document_type in ("dl", "id"):
            if not session.get(UserProfile, user_id):
                raise not_found("User not found")
            driver = session.get(DriverProfile, user_id)
            if driver is None:
                driver = DriverProfile(user_profile_id=user_id)
            if document_type == "dl":
                driver.dl_url = url
            else:
                driver.id_url = url
            driver.updated_at = now
            session.add(driver)
        else:
            raise bad_request("Invalid document_type")
        session.commit()
    logger.info("stored %s document for %s", document_type, user_id)
    return ok(message="Document saved")
