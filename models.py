from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from datetime import datetime, timezone
import uuid


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp(**kwargs):
    """A timezone-aware datetime column."""
    return Field(sa_type=DateTime(timezone=True), **kwargs)


class UserProfile(SQLModel, table=True):
    __tablename__ = "user_profiles"

    id: str = Field(default_factory=new_id, primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    role: str = "passenger"  # driver, passenger, both
    is_email_verified: bool = False
    is_phone_verified: bool = False
    profile_url: Optional[str] = None
    created_at: datetime = timestamp(default_factory=utcnow)
    updated_at: datetime = timestamp(default_factory=utcnow)


class DriverProfile(SQLModel, table=True):
    __tablename__ = "driver_profiles"

    user_profile_id: str = Field(foreign_key="user_profiles.id", primary_key=True)
    id_url: str = ""
    id_verified: bool = False
    dl_url: str = ""
    dl_verified: bool = False
    created_at: datetime = timestamp(default_factory=utcnow)
    updated_at: datetime = timestamp(default_factory=utcnow)


class Ride(SQLModel, table=True):
    __tablename__ = "rides"

    ride_id: str = Field(default_factory=new_id, primary_key=True)
    vehicle_type: str = "sedan"
    origin: str
    destination: str
    origin_state: Optional[str] = None
    destination_state: Optional[str] = None
    departure_time: datetime = timestamp(index=True)
    arrival_time: Optional[datetime] = timestamp(default=None)
    seats_total: int = 4
    seats_available: int = 4
    price_per_seat: float
    status: str = Field(default="open", index=True)  # open, full, completed, cancelled
    driver_id: str = Field(foreign_key="user_profiles.id", index=True)
    origin_geog: Optional[str] = None  # WKT POINT(lng lat)
    destination_geog: Optional[str] = None
    created_at: datetime = timestamp(default_factory=utcnow)
    updated_at: datetime = timestamp(default_factory=utcnow)


class RideStop(SQLModel, table=True):
    __tablename__ = "ride_stops"

    stop_id: Optional[int] = Field(default=None, primary_key=True)
    ride_id: str = Field(foreign_key="rides.ride_id", index=True)
    sequence: int
    landmark: Optional[str] = None
    stop_geog: Optional[str] = None


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO string in UTC. SQLite hands timestamps back without an offset."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def to_dict(row) -> dict:
    """JSON-ready dict of a table row, datetimes as ISO strings."""
    out = row.model_dump()
    for key, value in out.items():
        if isinstance(value, datetime):
            out[key] = iso_utc(value)
    return out
