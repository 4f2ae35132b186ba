"""Ride matching: scores and orders candidate rides for a passenger's search.

Everything here is pure. Handlers in rides.py load the candidates and hand
them over as Ride rows or already-serialised dicts.
"""
from datetime import date, datetime, timezone
from functools import cmp_to_key
from math import radians, sin, cos, sqrt, atan2, floor
from typing import Dict, Iterable, List, Optional, Tuple

import config
from models import Ride, to_dict

# Interchangeable vehicle categories. Looked up in both directions.
VEHICLE_SIMILARITIES: Dict[str, List[str]] = {
    # cars
    "car": ["sedan", "hatchback", "suv", "crossover", "wagon"],
    "sedan": ["car", "hatchback", "compact", "luxury"],
    "hatchback": ["car", "sedan", "compact"],
    "suv": ["car", "crossover", "jeep", "mpv"],
    "crossover": ["suv", "car"],
    "mpv": ["suv", "van", "minivan"],
    "luxury": ["sedan", "car", "premium"],
    # two wheelers
    "bike": ["motorcycle", "scooter", "two-wheeler"],
    "motorcycle": ["bike", "scooter", "two-wheeler"],
    "scooter": ["bike", "motorcycle", "two-wheeler"],
    # three wheelers
    "auto": ["rickshaw", "three-wheeler", "tuk-tuk"],
    "rickshaw": ["auto", "three-wheeler", "tuk-tuk"],
    "three-wheeler": ["auto", "rickshaw"],
    # commercial
    "van": ["mini-van", "mpv", "commercial"],
    "truck": ["mini-truck", "commercial", "goods-vehicle"],
    "bus": ["mini-bus", "coach", "public-transport"],
    # premium
    "premium": ["luxury", "executive", "business"],
    "executive": ["premium", "luxury", "business"],
}


def round_half_up(value: float) -> int:
    """Halves go up (20.5 -> 21), unlike round() which goes to even."""
    # round(.., 9) drops float noise such as 20.499999999999996
    return int(floor(round(value, 9) + 0.5))


def normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def fuzzy_text_match(search_text: Optional[str], target_text: Optional[str]) -> int:
    """Similarity of a searched place name to a stored one, 0-100.

    Exact match 100, containment either way 80, otherwise up to 60 for the
    share of search words (longer than two letters) that overlap a target word.
    """
    search = normalize(search_text)
    target = normalize(target_text)
    if not search or not target:
        return 0
    if search == target:
        return 100
    if search in target or target in search:
        return 80

    search_words = [w for w in search.split() if len(w) > 2]
    target_words = [w for w in target.split() if len(w) > 2]
    if not search_words:
        return 0
    matching = 0
    for sw in search_words:
        if any(sw in tw or tw in sw for tw in target_words):
            matching += 1
    return round_half_up(matching / len(search_words) * 60)


def is_vehicle_similar(ride_vehicle: Optional[str], preferred: Iterable[str]) -> bool:
    ride_type = normalize(ride_vehicle)
    for p in preferred:
        wanted = normalize(p)
        if ride_type == wanted:
            return True
        if wanted in VEHICLE_SIMILARITIES.get(ride_type, []):
            return True
        if ride_type in VEHICLE_SIMILARITIES.get(wanted, []):
            return True
    return False


def days_apart(departure, travel_date: date) -> int:
    """Calendar days between a departure (UTC, aware or naive) and a travel date."""
    if isinstance(departure, str):
        departure = datetime.fromisoformat(departure)
    if isinstance(departure, datetime):
        if departure.tzinfo is not None:
            departure = departure.astimezone(timezone.utc)
        departure = departure.date()
    return abs((departure - travel_date).days)


def date_score(departure, travel_date: Optional[date]) -> int:
    if travel_date is None:
        return 100
    return config.DATE_OFFSET_SCORES.get(days_apart(departure, travel_date), 0)


def vehicle_score(ride_vehicle: Optional[str], preferences: Optional[List[str]]) -> int:
    if not preferences:
        return config.VEHICLE_EXACT_SCORE
    if normalize(ride_vehicle) in [normalize(p) for p in preferences]:
        return config.VEHICLE_EXACT_SCORE
    if is_vehicle_similar(ride_vehicle, preferences):
        return config.VEHICLE_SIMILAR_SCORE
    return config.VEHICLE_OTHER_SCORE


def match_type_for(confidence: float) -> str:
    if confidence > config.DIRECT_MATCH_THRESHOLD:
        return "direct"
    if confidence > config.INTERMEDIATE_MATCH_THRESHOLD:
        return "intermediate"
    return "fuzzy"


def score_ride(ride: Ride, origin_name: str, destination_name: str,
               travel_date: Optional[date] = None,
               vehicle_preferences: Optional[List[str]] = None) -> dict:
    """Annotate one candidate ride with its location/date/vehicle scores."""
    origin_match = fuzzy_text_match(origin_name, ride.origin)
    dest_match = fuzzy_text_match(destination_name, ride.destination)
    location = (origin_match + dest_match) / 2
    when = date_score(ride.departure_time, travel_date)
    vehicle = vehicle_score(ride.vehicle_type, vehicle_preferences)

    confidence = round_half_up(
        location * config.LOCATION_WEIGHT
        + when * config.DATE_WEIGHT
        + vehicle * config.VEHICLE_WEIGHT
    )
    kind = match_type_for(confidence)

    match = to_dict(ride)
    match.pop("origin_geog", None)
    match.pop("destination_geog", None)
    match.update({
        "origin_distance_km": None,
        "dest_distance_km": None,
        "total_distance_km": None,
        "route_match_score": location,
        "date_score": when,
        "vehicle_score": vehicle,
        "date_offset_days": days_apart(ride.departure_time, travel_date) if travel_date else None,
        "is_intermediate_match": kind == "intermediate",
        "match_type": kind,
        "confidence_score": confidence,
        "location_breakdown": {"origin_match": origin_match, "dest_match": dest_match},
    })
    return match


def _compare(a: dict, b: dict, with_date: bool) -> int:
    location_diff = b["route_match_score"] - a["route_match_score"]
    if abs(location_diff) > config.LOCATION_DECISIVE_GAP:
        return -1 if location_diff < 0 else 1
    if with_date:
        day_diff = a["date_offset_days"] - b["date_offset_days"]
        if abs(day_diff) > config.DATE_DECISIVE_GAP_DAYS:
            return -1 if day_diff < 0 else 1
    return b["confidence_score"] - a["confidence_score"]


def rank_matches(matches: List[dict], travel_date: Optional[date] = None,
                 limit: int = config.MAX_RESULTS) -> List[dict]:
    kept = [m for m in matches if m["confidence_score"] > config.MIN_CONFIDENCE]
    with_date = travel_date is not None
    kept.sort(key=cmp_to_key(lambda a, b: _compare(a, b, with_date)))
    return kept[:limit]


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def _origin_matches(ride: dict, origin: dict) -> bool:
    ride_state = normalize(ride.get("origin_state"))
    ride_origin = normalize(ride.get("origin"))
    state = normalize(origin.get("state"))
    location = normalize(origin.get("location"))

    if ride_state and state:
        if _contains_either(ride_state, state):
            return True
        # NCR: Delhi and Haryana serve each other
        if "delhi" in state and "delhi" in ride_state:
            return True
        if "haryana" in state and "delhi" in ride_state:
            return True
        if "delhi" in state and "haryana" in ride_state:
            return True
    if ride_origin and location and location in ride_origin:
        return True
    if location and ride_state and ride_state in location:
        return True
    return False


def _destination_matches(ride: dict, destination: dict) -> bool:
    ride_state = normalize(ride.get("destination_state"))
    ride_dest = normalize(ride.get("destination"))
    state = normalize(destination.get("state"))
    location = normalize(destination.get("location"))

    if ride_state and state:
        if _contains_either(ride_state, state):
            return True
        # Tricity: Punjab and Mohali
        if "punjab" in state and "mohali" in ride_state:
            return True
        if "mohali" in state and "punjab" in ride_state:
            return True
        if "landran" in location and "landran" in ride_dest:
            return True
    if ride_dest and location and location in ride_dest:
        return True
    if location and ride_state and ride_state in location:
        return True
    return False


def text_based_match(ride: dict, origin: dict, destination: dict) -> bool:
    """Looser regional matching used when no distance can be computed."""
    return _origin_matches(ride, origin) and _destination_matches(ride, destination)


def sort_geographic(rides: List[dict]) -> List[dict]:
    def key(r):
        distances = r.get("distances")
        return (
            0 if distances else 1,
            distances["total_km"] if distances else 0,
            -r["seats_available"],
            r["departure_time"],
        )
    return sorted(rides, key=key)


def round_km(meters: float) -> float:
    return round(meters / 1000, 1)


def haversine_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    lat1, lon1 = a
    lat2, lon2 = b
    R = 6371.0
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    rlat1 = radians(lat1)
    rlat2 = radians(lat2)
    a_ = sin(dlat / 2) ** 2 + cos(rlat1) * cos(rlat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a_), sqrt(1 - a_))
    return R * c
