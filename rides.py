"""Ride endpoints: publish, list, detail, delete and the two search flavours."""
import logging
import math
import time
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select, col
from starlette.requests import Request
from starlette.responses import JSONResponse

import config
import db
from db import get_session
from errors import bad_request, forbidden, not_found
from matching import score_ride, rank_matches, text_based_match, sort_geographic, round_km
from models import Ride, RideStop, UserProfile, to_dict, iso_utc
from publishing import seats_for_vehicle, ist_to_utc, arrival_utc, point_wkt
from responses import read_json, ok

logger = logging.getLogger(__name__)

DRIVER_FIELDS = ["id", "first_name", "last_name", "display_name", "phone", "email", "profile_url"]


def _parse_travel_date(value) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise bad_request("Invalid travelDate", "Expected YYYY-MM-DD")


def _parse_passengers(value) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise bad_request("Invalid passengersNeeded")
    if n < 1:
        raise bad_request("Invalid passengersNeeded", "At least one passenger is required")
    return n


def _parse_radius(value) -> float:
    """maxRadius in meters; absent means the configured default."""
    if value is None or value == "":
        return config.DEFAULT_SEARCH_RADIUS_M
    try:
        radius = float(value)
    except (TypeError, ValueError):
        radius = 0
    if isinstance(value, bool) or not math.isfinite(radius) or radius <= 0:
        raise bad_request("Invalid maxRadius", "Expected a positive number of meters")
    return radius


def _parse_preferences(value) -> List[str]:
    if not value:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise bad_request("Invalid vehiclePreferences", "Expected a list of vehicle types")
    return value


def _place_name(value) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        return value.get("name") or value.get("location")
    return None


def _stops_by_ride(session, ride_ids: List[str]) -> dict:
    grouped = {rid: [] for rid in ride_ids}
    if not ride_ids:
        return grouped
    stops = session.exec(
        select(RideStop).where(col(RideStop.ride_id).in_(ride_ids)).order_by(RideStop.sequence)
    ).all()
    for stop in stops:
        grouped[stop.ride_id].append(to_dict(stop))
    return grouped


async def publish_ride(request: Request):
    payload = await read_json(request)
    form = payload.get("formData") or {}
    booking = payload.get("bookingDetails") or {}
    if not isinstance(form, dict) or not isinstance(booking, dict):
        raise bad_request("Invalid request body", "formData and bookingDetails must be objects")
    driver_id = payload.get("driverId")
    if not (form.get("origin") and form.get("destination") and booking.get("date")
            and booking.get("departureTime") and driver_id):
        raise bad_request(
            "Missing required fields",
            "Origin, destination, departure date, departure time, and driver ID are required",
        )
    try:
        price = float(booking.get("pricePerSeat"))
    except (TypeError, ValueError):
        price = 0
    if not math.isfinite(price) or price <= 0:
        raise bad_request("Invalid price per seat")

    try:
        departure = ist_to_utc(booking["date"], booking["departureTime"])
        arrival = arrival_utc(departure, booking.get("arrivalTime"), payload.get("duration"))
    except (AttributeError, TypeError, ValueError) as e:
        raise bad_request("Invalid date or time", str(e))

    vehicle_type = payload.get("vehicleType") or "sedan"
    if not isinstance(vehicle_type, str):
        raise bad_request("Invalid vehicleType")
    stopovers = payload.get("stopovers") or []
    if not isinstance(stopovers, list) or not all(isinstance(s, dict) for s in stopovers):
        raise bad_request("Invalid stopovers", "Each stopover must be an object with a name")
    try:
        origin_geog = point_wkt(payload.get("originCoords"))
        destination_geog = point_wkt(payload.get("destinationCoords"))
        stop_geogs = [point_wkt(stop.get("coordinates")) for stop in stopovers]
    except (TypeError, ValueError):
        raise bad_request("Invalid coordinates", "Expected [lat, lng] number pairs")

    seats = seats_for_vehicle(vehicle_type)
    ride = Ride(
        vehicle_type=vehicle_type,
        origin=form.get("originLandmark") or form["origin"],
        destination=form.get("destinationLandmark") or form["destination"],
        origin_state=payload.get("originState") or None,
        destination_state=payload.get("destinationState") or None,
        departure_time=departure,
        arrival_time=arrival,
        seats_total=seats,
        seats_available=seats,
        price_per_seat=price,
        driver_id=driver_id,
        status="open",
        origin_geog=origin_geog,
        destination_geog=destination_geog,
    )
    with get_session() as session:
        if not session.get(UserProfile, driver_id):
            raise not_found("Driver not found")
        session.add(ride)
        for i, (stop, geog) in enumerate(zip(stopovers, stop_geogs), start=1):
            session.add(RideStop(
                ride_id=ride.ride_id,
                sequence=i,
                landmark=stop.get("name"),
                stop_geog=geog,
            ))
        session.commit()
        session.refresh(ride)
        logger.info("published ride %s %s -> %s with %d stops",
                    ride.ride_id, ride.origin, ride.destination, len(stopovers))
        summary = {
            "ride_id": ride.ride_id,
            "origin": ride.origin,
            "destination": ride.destination,
            "departure_time": iso_utc(ride.departure_time),
            "arrival_time": iso_utc(ride.arrival_time),
            "seats_total": ride.seats_total,
            "price_per_seat": ride.price_per_seat,
            "stopovers_count": len(stopovers),
        }
    return ok(summary, rideId=summary["ride_id"], message="Ride published successfully!")


async def list_rides(request: Request):
    with get_session() as session:
        rides = session.exec(
            select(Ride).order_by(col(Ride.created_at).desc()).limit(config.LISTING_LIMIT)
        ).all()
        ride_ids = [r.ride_id for r in rides]
        stops = [s for group in _stops_by_ride(session, ride_ids).values() for s in group]
        out = [to_dict(r) for r in rides]
    logger.info("listed %d rides", len(out))
    return JSONResponse({
        "success": True,
        "count": len(out),
        "rides": out,
        "stops": stops,
        "message": f"Found {len(out)} rides in database",
    })


async def driver_rides(request: Request):
    driver_id = request.query_params.get("driverId")
    if not driver_id:
        raise bad_request("Driver ID is required", "Please provide driverId as a query parameter")
    with get_session() as session:
        rides = session.exec(
            select(Ride).where(Ride.driver_id == driver_id).order_by(col(Ride.created_at).desc())
        ).all()
        stops = _stops_by_ride(session, [r.ride_id for r in rides])
        out = []
        for r in rides:
            item = to_dict(r)
            item["stops"] = stops[r.ride_id]
            out.append(item)
    logger.info("fetched %d rides for driver %s", len(out), driver_id)
    return JSONResponse({
        "success": True,
        "count": len(out),
        "rides": out,
        "driverId": driver_id,
        "message": f"Found {len(out)} rides for this driver",
    })


async def get_ride(request: Request):
    ride_id = request.path_params["ride_id"]
    with get_session() as session:
        ride = session.get(Ride, ride_id)
        if not ride or ride.status != "open":
            raise not_found("Ride not found or unavailable")
        out = to_dict(ride)
        profile = session.get(UserProfile, ride.driver_id)
        if profile:
            profile_data = to_dict(profile)
            out["driver_profile"] = {k: profile_data.get(k) for k in DRIVER_FIELDS}
        else:
            logger.warning("no profile for driver %s of ride %s", ride.driver_id, ride_id)
            out["driver_profile"] = None
    return JSONResponse({"success": True, "ride": out})


async def delete_ride(request: Request):
    ride_id = request.query_params.get("rideId")
    payload = await read_json(request)
    driver_id = payload.get("driverId")
    if not ride_id or not driver_id:
        raise bad_request("Missing required fields", "Ride ID and driver ID are required")

    with get_session() as session:
        ride = session.get(Ride, ride_id)
        if not ride:
            raise not_found("Ride not found", "The ride does not exist")
        if ride.driver_id != driver_id:
            raise forbidden("Permission denied", "You can only delete your own rides")
        if ride.status != "open":
            raise bad_request("Cannot delete ride", f"Rides with status '{ride.status}' cannot be deleted")

        stops = session.exec(select(RideStop).where(RideStop.ride_id == ride_id)).all()
        for stop in stops:
            session.delete(stop)
        session.delete(ride)
        session.commit()
    logger.info("deleted ride %s (%d stops) for driver %s", ride_id, len(stops), driver_id)
    return JSONResponse({"success": True, "message": "Ride deleted successfully", "deletedRideId": ride_id})


async def search_enhanced(request: Request):
    started = time.monotonic()
    payload = await read_json(request)
    origin_name = _place_name(payload.get("origin"))
    dest_name = _place_name(payload.get("destination"))
    if not origin_name or not dest_name or not payload.get("passengersNeeded"):
        raise bad_request("Missing required fields", "Origin, destination, and passengers needed are required")
    passengers = _parse_passengers(payload["passengersNeeded"])
    travel_date = _parse_travel_date(payload.get("travelDate"))
    preferences = _parse_preferences(payload.get("vehiclePreferences"))
    max_radius = _parse_radius(payload.get("maxRadius"))

    with get_session() as session:
        candidates = session.exec(
            select(Ride)
            .where(Ride.status == "open", Ride.seats_available >= passengers)
            .order_by(Ride.departure_time)
        ).all()
        scored = [score_ride(r, origin_name, dest_name, travel_date, preferences) for r in candidates]

    matches = rank_matches(scored, travel_date)
    strategy = "priority_scoring" if candidates else "no_rides_available"
    elapsed_ms = round((time.monotonic() - started) * 1000)
    logger.info("search %r -> %r: %d candidates, %d matches in %dms",
                origin_name, dest_name, len(candidates), len(matches), elapsed_ms)
    metadata = {
        "totalFound": len(matches),
        "searchStrategy": strategy,
        "searchTime": f"{elapsed_ms}ms",
        "searchRadius": max_radius / 1000,
        "searchDate": travel_date.isoformat() if travel_date else "any date",
        "passengersNeeded": passengers,
        "filters": {
            "vehicleTypes": preferences or "any vehicle",
            "priceRange": payload.get("priceRange") or "any price",
            "timePreference": payload.get("timePreference") or "any time",
        },
        "qualityDistribution": {
            kind: sum(1 for m in matches if m["match_type"] == kind)
            for kind in ("direct", "intermediate", "fuzzy")
        },
    }
    return JSONResponse({"success": True, "results": {"rides": matches, "metadata": metadata}})


def _locate(ride: Ride, origin: dict, destination: dict, max_radius: float):
    """(include, distances) for one candidate in the geographic search."""
    as_dict = to_dict(ride)
    origin_coords = origin.get("coordinates")
    dest_coords = destination.get("coordinates")
    if not (origin_coords and dest_coords):
        return text_based_match(as_dict, origin, destination), None
    if not (ride.origin_geog and ride.destination_geog):
        return text_based_match(as_dict, origin, destination), None

    try:
        result = db.calculate_ride_distance(ride.ride_id, origin_coords, dest_coords, max_radius)
    except SQLAlchemyError as e:
        logger.warning("distance function failed for ride %s, using text matching: %s", ride.ride_id, e)
        return text_based_match(as_dict, origin, destination), None
    if not result:
        logger.warning("no distance for ride %s, using text matching", ride.ride_id)
        return text_based_match(as_dict, origin, destination), None
    if not result["within_radius"]:
        return False, None
    origin_m = result["origin_distance_m"]
    dest_m = result["dest_distance_m"]
    return True, {
        "origin_km": round_km(origin_m),
        "destination_km": round_km(dest_m),
        "total_km": round_km(origin_m + dest_m),
    }


async def search_postgis(request: Request):
    payload = await read_json(request)
    origin = payload.get("origin") if isinstance(payload.get("origin"), dict) else {}
    destination = payload.get("destination") if isinstance(payload.get("destination"), dict) else {}
    if not origin.get("location") or not destination.get("location") or not payload.get("passengersNeeded"):
        raise bad_request("Missing required fields", "Origin, destination, and passengers needed are required")
    passengers = _parse_passengers(payload["passengersNeeded"])
    travel_date = _parse_travel_date(payload.get("travelDate"))
    preferences = _parse_preferences(payload.get("vehiclePreferences"))
    max_radius = _parse_radius(payload.get("maxRadius"))

    query = select(Ride).where(Ride.status == "open", Ride.seats_available >= passengers)
    if travel_date:
        day_start = datetime.combine(travel_date, dt_time.min, tzinfo=timezone.utc)
        query = query.where(Ride.departure_time >= day_start,
                            Ride.departure_time < day_start + timedelta(days=1))
    if preferences:
        query = query.where(col(Ride.vehicle_type).in_(preferences))

    with get_session() as session:
        rides = session.exec(query).all()
    logger.info("geographic search %r -> %r: %d candidates",
                origin.get("location"), destination.get("location"), len(rides))

    found = []
    for ride in rides:
        try:
            include, distances = _locate(ride, origin, destination, max_radius)
        except Exception:
            logger.exception("error processing ride %s", ride.ride_id)
            continue
        if include:
            item = to_dict(ride)
            item["distances"] = distances
            found.append(item)

    ordered = sort_geographic(found)
    return JSONResponse({
        "success": True,
        "results": {
            "rides": ordered,
            "metadata": {
                "totalFound": len(ordered),
                "searchRadius": max_radius / 1000,
                "searchDate": travel_date.isoformat() if travel_date else "Any date",
                "passengersNeeded": passengers,
                "usedPostGIS": any(r["distances"] for r in ordered),
            },
        },
    })
