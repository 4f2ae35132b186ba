from datetime import datetime, timedelta, timezone
import random

from db import init_db, get_session
from models import UserProfile, DriverProfile, Ride, RideStop
from publishing import seats_for_vehicle

ROUTES = [
    ("Delhi", "Delhi", "Chandigarh", "Chandigarh", ["Panipat", "Ambala"]),
    ("Connaught Place", "Delhi", "Jaipur", "Rajasthan", ["Gurgaon", "Behror"]),
    ("Gurgaon", "Haryana", "Mohali", "Punjab", ["Karnal"]),
    ("Mumbai", "Maharashtra", "Pune", "Maharashtra", ["Lonavala"]),
    ("Bangalore", "Karnataka", "Mysore", "Karnataka", []),
    ("Noida", "Uttar Pradesh", "Agra", "Uttar Pradesh", ["Mathura"]),
]

VEHICLES = ["sedan", "suv", "hatchback", "bike", "van"]


def seed():
    init_db()
    session = get_session()
    drivers = []
    for i in range(1, 6):
        u = UserProfile(
            email=f"driver{i}@example.com",
            first_name=f"Driver{i}",
            last_name="Singh",
            display_name=f"Driver {i}",
            role="driver" if i % 2 else "both",
            is_email_verified=True,
            is_phone_verified=i % 2 == 1,
        )
        drivers.append(u)
        session.add(u)
    passengers = [
        UserProfile(email=f"rider{i}@example.com", display_name=f"Rider {i}", role="passenger")
        for i in range(1, 11)
    ]
    session.add_all(passengers)
    session.commit()
    for i, d in enumerate(drivers):
        session.add(DriverProfile(
            user_profile_id=d.id,
            id_url=f"https://files.example.com/id/{d.id}.png",
            dl_url=f"https://files.example.com/dl/{d.id}.png",
            id_verified=i < 3,
            dl_verified=i < 2,
        ))

    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    for n in range(30):
        origin, origin_state, dest, dest_state, stops = random.choice(ROUTES)
        vehicle = random.choice(VEHICLES)
        seats = seats_for_vehicle(vehicle)
        departure = now + timedelta(days=random.randint(0, 10), hours=random.randint(0, 23))
        ride = Ride(
            vehicle_type=vehicle,
            origin=origin,
            destination=dest,
            origin_state=origin_state,
            destination_state=dest_state,
            departure_time=departure,
            arrival_time=departure + timedelta(hours=random.randint(3, 8)),
            seats_total=seats,
            seats_available=random.randint(1, seats),
            price_per_seat=float(random.choice([250, 400, 550, 700, 900])),
            driver_id=drivers[n % len(drivers)].id,
        )
        session.add(ride)
        for seq, landmark in enumerate(stops, start=1):
            session.add(RideStop(ride_id=ride.ride_id, sequence=seq, landmark=landmark))
    session.commit()
    print("Seeded sample data")


if __name__ == "__main__":
    seed()
