from sqlmodel import create_engine, Session
from sqlmodel import SQLModel
from sqlalchemy import text
import logging
import os

logger = logging.getLogger(__name__)

DB_FILE = os.path.join(os.path.dirname(__file__), "rideshare.db")
_default_url = f"sqlite:///{DB_FILE}"
DATABASE_URL = os.environ.get("DATABASE_URL", _default_url)

# SQLite needs check_same_thread=False; Postgres does not
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=False, connect_args=_connect_args, pool_pre_ping=True)

DISTANCE_SQL = text(
    "SELECT origin_distance_m, dest_distance_m, within_radius "
    "FROM calculate_ride_distance(:ride_id, :search_origin_lng, :search_origin_lat, "
    ":search_dest_lng, :search_dest_lat, :max_radius_meters)"
)


def init_db():
    SQLModel.metadata.create_all(engine)


def get_session():
    return Session(engine)


def calculate_ride_distance(ride_id, origin, destination, max_radius_meters):
    """Ask the database how far a ride's endpoints are from the searched points.

    origin and destination are (lng, lat) pairs. Returns a dict with
    origin_distance_m, dest_distance_m and within_radius, or None when the
    function returned no row. Runs on its own connection so a missing
    function does not abort the caller's session; database errors propagate.
    """
    params = {
        "ride_id": ride_id,
        "search_origin_lng": origin[0],
        "search_origin_lat": origin[1],
        "search_dest_lng": destination[0],
        "search_dest_lat": destination[1],
        "max_radius_meters": max_radius_meters,
    }
    with engine.connect() as conn:
        row = conn.execute(DISTANCE_SQL, params).mappings().first()
    if row is None:
        return None
    return dict(row)
