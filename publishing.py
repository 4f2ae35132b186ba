"""Helpers for turning the publish-ride form into a Ride row.

Drivers enter dates and clock times in IST; rides are stored as aware UTC datetimes.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

IST_OFFSET = timedelta(hours=5, minutes=30)
IST = timezone(IST_OFFSET, "IST")

SEATS_BY_VEHICLE = {
    "bike": 1,
    "sedan": 4,
    "suv": 6,
    "van": 6,
    "minibus": 10,
    "bus": 16,
}

_DURATION_RE = re.compile(r"^\s*(?:(\d+)\s*h)?\s*(?:(\d+)\s*m)?\s*$")


def seats_for_vehicle(vehicle_type: Optional[str]) -> int:
    return SEATS_BY_VEHICLE.get((vehicle_type or "").lower(), 4)


def _clock(value: str):
    hours, minutes = value.split(":")[:2]
    hours, minutes = int(hours), int(minutes)
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"invalid time {value!r}")
    return hours, minutes


def ist_to_utc(date_str: str, time_str: str) -> datetime:
    """'2025-03-01', '09:30' in IST -> aware UTC datetime."""
    day = datetime.strptime(date_str, "%Y-%m-%d")
    hours, minutes = _clock(time_str)
    return day.replace(hour=hours, minute=minutes, tzinfo=IST).astimezone(timezone.utc)


def parse_duration_minutes(duration: Optional[str]) -> int:
    """'2h 30m', '45m', '43h' -> minutes; anything unparseable is 0."""
    if not duration:
        return 0
    m = _DURATION_RE.match(duration)
    if not m:
        return 0
    return int(m.group(1) or 0) * 60 + int(m.group(2) or 0)


def arrival_utc(departure: datetime, arrival_time: Optional[str], duration: Optional[str] = None) -> Optional[datetime]:
    """Arrival instant for a ride departing at `departure` (aware UTC).

    A positive duration wins. Otherwise the IST arrival clock time is placed on
    the first day that is after the departure.
    """
    minutes = parse_duration_minutes(duration)
    if minutes > 0:
        return departure + timedelta(minutes=minutes)
    if not arrival_time:
        return None
    hours, mins = _clock(arrival_time)
    departure_ist = departure.astimezone(IST)
    arrival_ist = departure_ist.replace(hour=hours, minute=mins, second=0, microsecond=0)
    while arrival_ist <= departure_ist:
        arrival_ist += timedelta(days=1)
    return arrival_ist.astimezone(timezone.utc)


def point_wkt(lat_lng) -> Optional[str]:
    """[lat, lng] from the form -> 'POINT(lng lat)' for a geography column."""
    if not lat_lng or len(lat_lng) != 2:
        return None
    lat, lng = float(lat_lng[0]), float(lat_lng[1])
    return f"POINT({lng} {lat})"
