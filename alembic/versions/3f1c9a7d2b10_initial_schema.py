"""initial_schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 10:12:31.418204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CALCULATE_RIDE_DISTANCE = """
CREATE OR REPLACE FUNCTION calculate_ride_distance(
    ride_id varchar,
    search_origin_lng double precision,
    search_origin_lat double precision,
    search_dest_lng double precision,
    search_dest_lat double precision,
    max_radius_meters double precision
)
RETURNS TABLE (origin_distance_m double precision, dest_distance_m double precision, within_radius boolean)
LANGUAGE sql STABLE AS $$
    SELECT
        ST_Distance(r.origin_geog, ST_SetSRID(ST_MakePoint(search_origin_lng, search_origin_lat), 4326)::geography),
        ST_Distance(r.destination_geog, ST_SetSRID(ST_MakePoint(search_dest_lng, search_dest_lat), 4326)::geography),
        ST_DWithin(r.origin_geog, ST_SetSRID(ST_MakePoint(search_origin_lng, search_origin_lat), 4326)::geography, max_radius_meters)
            AND ST_DWithin(r.destination_geog, ST_SetSRID(ST_MakePoint(search_dest_lng, search_dest_lat), 4326)::geography, max_radius_meters)
    FROM rides r
    WHERE r.ride_id = calculate_ride_distance.ride_id
      AND r.origin_geog IS NOT NULL
      AND r.destination_geog IS NOT NULL
$$;
"""


def upgrade() -> None:
    """Create user_profiles, driver_profiles, rides, ride_stops; PostGIS extras on Postgres."""
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="passenger"),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_phone_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("profile_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_profiles_email", "user_profiles", ["email"])
    op.create_table(
        "driver_profiles",
        sa.Column("user_profile_id", sa.String(), nullable=False),
        sa.Column("id_url", sa.String(), nullable=False, server_default=""),
        sa.Column("id_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dl_url", sa.String(), nullable=False, server_default=""),
        sa.Column("dl_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_profile_id"], ["user_profiles.id"]),
        sa.PrimaryKeyConstraint("user_profile_id"),
    )
    op.create_table(
        "rides",
        sa.Column("ride_id", sa.String(), nullable=False),
        sa.Column("vehicle_type", sa.String(), nullable=False, server_default="sedan"),
        sa.Column("origin", sa.String(), nullable=False),
        sa.Column("destination", sa.String(), nullable=False),
        sa.Column("origin_state", sa.String(), nullable=True),
        sa.Column("destination_state", sa.String(), nullable=True),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("seats_total", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("seats_available", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("price_per_seat", sa.Float(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("driver_id", sa.String(), nullable=False),
        sa.Column("origin_geog", sa.String(), nullable=True),
        sa.Column("destination_geog", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["driver_id"], ["user_profiles.id"]),
        sa.PrimaryKeyConstraint("ride_id"),
        sa.CheckConstraint("seats_available <= seats_total", name="ck_rides_seats"),
    )
    op.create_index("ix_rides_status", "rides", ["status"])
    op.create_index("ix_rides_driver_id", "rides", ["driver_id"])
    op.create_index("ix_rides_departure_time", "rides", ["departure_time"])
    op.create_table(
        "ride_stops",
        sa.Column("stop_id", sa.Integer(), nullable=False),
        sa.Column("ride_id", sa.String(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("landmark", sa.String(), nullable=True),
        sa.Column("stop_geog", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["ride_id"], ["rides.ride_id"]),
        sa.PrimaryKeyConstraint("stop_id"),
    )
    op.create_index("ix_ride_stops_ride_id", "ride_stops", ["ride_id"])

    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS postgis")
        for table, column in (("rides", "origin_geog"), ("rides", "destination_geog"), ("ride_stops", "stop_geog")):
            op.execute(
                f"ALTER TABLE {table} ALTER COLUMN {column} "
                f"TYPE geography(Point, 4326) USING {column}::geography"
            )
        op.execute(CALCULATE_RIDE_DISTANCE)


def downgrade() -> None:
    """Drop all initial tables."""
    if op.get_bind().dialect.name == "postgresql":
        op.execute(
            "DROP FUNCTION IF EXISTS calculate_ride_distance("
            "varchar, double precision, double precision, double precision, double precision, double precision)"
        )
    op.drop_index("ix_ride_stops_ride_id", table_name="ride_stops")
    op.drop_table("ride_stops")
    op.drop_index("ix_rides_departure_time", table_name="rides")
    op.drop_index("ix_rides_driver_id", table_name="rides")
    op.drop_index("ix_rides_status", table_name="rides")
    op.drop_table("rides")
    op.drop_table("driver_profiles")
    op.drop_index("ix_user_profiles_email", table_name="user_profiles")
    op.drop_table("user_profiles")
