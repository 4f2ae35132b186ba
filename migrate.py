"""Migration / setup helper
Creates the tables straight from the models, for local SQLite development.
Postgres deployments run `alembic upgrade head` instead, which also installs
PostGIS and the calculate_ride_distance function.
Run: python migrate.py
"""
from db import init_db, DATABASE_URL
import models  # noqa: F401


def main():
    init_db()
    print(f"Database initialized ({DATABASE_URL})")


if __name__ == "__main__":
    main()
