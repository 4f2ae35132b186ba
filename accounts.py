"""User profiles, driver verification status and the admin actions."""
import logging
from datetime import datetime, timezone

from sqlmodel import select, col
from starlette.requests import Request

from db import get_session
from errors import bad_request, not_found
from models import UserProfile, DriverProfile, to_dict
from responses import read_json, require, ok

logger = logging.getLogger(__name__)

ROLES = ("driver", "passenger", "both")
EDITABLE_FIELDS = {
    "email", "phone", "first_name", "last_name", "display_name", "role",
    "is_email_verified", "is_phone_verified", "profile_url",
}


def _user_id(request: Request) -> str:
    user_id = request.query_params.get("userId")
    if not user_id:
        raise bad_request("User ID is required")
    return user_id


async def user_profile(request: Request):
    user_id = _user_id(request)
    if request.method == "PUT":
        return await _update_profile(request, user_id)

    with get_session() as session:
        profile = session.get(UserProfile, user_id)
        if not profile:
            raise not_found("User not found")
        driver = session.get(DriverProfile, user_id)
        data = {
            "userProfile": to_dict(profile),
            "driverProfile": to_dict(driver) if driver else None,
        }
    return ok(data)


async def _update_profile(request: Request, user_id: str):
    updates = await read_json(request)
    unknown = sorted(set(updates) - EDITABLE_FIELDS)
    if unknown:
        raise bad_request(f"Unknown fields: {', '.join(unknown)}")
    if "role" in updates and updates["role"] not in ROLES:
        raise bad_request("Invalid role", f"Role must be one of {', '.join(ROLES)}")

    with get_session() as session:
        profile = session.get(UserProfile, user_id)
        if not profile:
            raise not_found("User not found")
        for key, value in updates.items():
            setattr(profile, key, value)
        profile.updated_at = datetime.now(timezone.utc)
        session.add(profile)
        session.commit()
        session.refresh(profile)
        data = to_dict(profile)
    logger.info("updated profile %s fields=%s", user_id, sorted(updates))
    return ok(data)


async def check_verification(request: Request):
    user_id = _user_id(request)
    with get_session() as session:
        driver = session.get(DriverProfile, user_id)
        id_verified = bool(driver and driver.id_verified)
        dl_verified = bool(driver and driver.dl_verified)
    return ok({
        "isVerified": driver is not None and id_verified and dl_verified,
        "hasProfile": driver is not None,
        "verificationStatus": {"idVerified": id_verified, "dlVerified": dl_verified},
    })


def verify_document(session, payload: dict) -> dict:
    user_id = payload.get("userId")
    document_type = payload.get("documentType")
    verified = payload.get("verified")
    if not user_id or not document_type or not isinstance(verified, bool):
        raise bad_request("Missing required fields: userId, documentType, verified")
    driver = session.get(DriverProfile, user_id)
    if not driver:
        raise not_found("Driver profile not found")
    if document_type == "id":
        driver.id_verified = verified
    else:
        driver.dl_verified = verified
    driver.updated_at = datetime.now(timezone.utc)
    session.add(driver)
    session.commit()
    logger.info("admin set %s verification for %s to %s", document_type, user_id, verified)
    return {"message": f"{document_type} verification updated successfully"}


def all_users(session, payload: dict) -> list:
    users = session.exec(select(UserProfile).order_by(col(UserProfile.created_at).desc())).all()
    drivers = {d.user_profile_id: d for d in session.exec(select(DriverProfile)).all()}
    out = []
    for user in users:
        driver = drivers.get(user.id)
        out.append({"userProfile": to_dict(user), "driverProfile": to_dict(driver) if driver else None})
    return out


def user_stats(session, payload: dict) -> dict:
    users = session.exec(select(UserProfile)).all()
    drivers = session.exec(select(DriverProfile)).all()
    return {
        "totalUsers": len(users),
        "totalDrivers": sum(1 for u in users if u.role in ("driver", "both")),
        "verifiedUsers": sum(1 for u in users if u.is_email_verified and u.is_phone_verified),
        "driversWithDocs": len(drivers),
        "verifiedDLs": sum(1 for d in drivers if d.dl_verified),
        "verifiedIDs": sum(1 for d in drivers if d.id_verified),
    }


ADMIN_ACTIONS = {
    "verify_document": verify_document,
    "get_all_users": all_users,
    "get_user_stats": user_stats,
}


async def admin(request: Request):
    payload = await read_json(request)
    require(payload, "action")
    action = ADMIN_ACTIONS.get(payload["action"])
    if action is None:
        raise bad_request("Invalid action")
    with get_session() as session:
        data = action(session, payload)
    return ok(data)
