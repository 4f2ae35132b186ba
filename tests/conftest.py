import os
import sys
from datetime import datetime, timezone

import pytest
from sqlmodel import SQLModel, create_engine

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import db as db_mod  # noqa: E402
from db import get_session  # noqa: E402
from models import UserProfile, DriverProfile, Ride, RideStop  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_db(tmp_path, monkeypatch):
    """Each test runs against a fresh SQLite database."""
    test_db = f"sqlite:///{tmp_path}/test.db"
    new_engine = create_engine(test_db, echo=False, connect_args={"check_same_thread": False})
    monkeypatch.setattr(db_mod, "engine", new_engine)
    SQLModel.metadata.create_all(new_engine)
    yield new_engine
    SQLModel.metadata.drop_all(new_engine)
    new_engine.dispose()


async def async_client(raise_app_exceptions=True):
    from main import app
    from httpx import AsyncClient, ASGITransport
    transport = ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
    return AsyncClient(transport=transport, base_url="http://testserver")


def make_user(display_name="Asha", role="driver", **kwargs):
    with get_session() as session:
        u = UserProfile(display_name=display_name, role=role, **kwargs)
        session.add(u)
        session.commit()
        session.refresh(u)
        return u


def make_driver_profile(user_id, **kwargs):
    with get_session() as session:
        d = DriverProfile(user_profile_id=user_id, **kwargs)
        session.add(d)
        session.commit()
        session.refresh(d)
        return d


def make_ride(driver_id, origin="Delhi", destination="Chandigarh",
              departure=datetime(2026, 11, 5, 8, 0, tzinfo=timezone.utc), seats=3, status="open",
              vehicle_type="sedan", stops=(), **kwargs):
    with get_session() as session:
        r = Ride(
            driver_id=driver_id,
            origin=origin,
            destination=destination,
            departure_time=departure,
            seats_total=max(seats, 4),
            seats_available=seats,
            price_per_seat=500.0,
            status=status,
            vehicle_type=vehicle_type,
            **kwargs,
        )
        session.add(r)
        for seq, landmark in enumerate(stops, start=1):
            session.add(RideStop(ride_id=r.ride_id, sequence=seq, landmark=landmark))
        session.commit()
        session.refresh(r)
        return r
