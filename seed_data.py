#!/usr/bin/env python3

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from shuttle.database import SessionLocal, init_db
from shuttle.credits.ledger import CreditLedger
from shuttle.credits.schemas import TransactionType
from shuttle.models import (
    User, Rider, Location, PricingTier, Trip, Booking, CreditBalance,
    CreditTransaction, CalendarEventMapping, CalendarBlock, Notification
)

def create_seed_data():
    init_db()
    db = SessionLocal()

    try:
        print("🚐 Creating seed data for Shuttle Booking Service...")

        # Clear existing data (in reverse dependency order)
        print("Clearing existing data...")
        db.query(Notification).delete()
        db.query(CalendarEventMapping).delete()
        db.query(CalendarBlock).delete()
        db.query(CreditTransaction).delete()
        db.query(CreditBalance).delete()
        db.query(Booking).delete()
        db.query(Trip).delete()
        db.query(PricingTier).delete()
        db.query(Location).delete()
        db.query(Rider).delete()
        db.query(User).delete()

        # 1. Create Users
        print("Creating users...")
        users = [
            User(name="Admin", email="admin@shuttle.local", role="ADMIN"),
            User(name="Thandi Mokoena", email="thandi@example.com"),
            User(name="Pieter van Wyk", email="pieter@example.com"),
            User(name="Aisha Patel", email="aisha@example.com"),
        ]
        db.add_all(users)
        db.flush()

        # 2. Create Riders (children and dependants booked by a parent account)
        print("Creating riders...")
        riders = [
            Rider(user_id=users[1].id, name="Lebo Mokoena"),
            Rider(user_id=users[1].id, name="Sipho Mokoena"),
            Rider(user_id=users[3].id, name="Ravi Patel"),
        ]
        db.add_all(riders)
        db.flush()

        # 3. Create Destinations with pricing tiers
        print("Creating destinations and pricing tiers...")
        destinations = [
            Location(name="Airport", address="O.R. Tambo International", base_cost=Decimal("50.00"), default_duration=60),
            Location(name="City Centre", address="Main Street Terminal", base_cost=Decimal("20.00"), default_duration=30),
            Location(name="School", address="Greenside High", default_duration=20),
        ]
        db.add_all(destinations)
        db.flush()

        tier_tables = {
            "Airport": [(1, "50.00"), (3, "40.00"), (5, "30.00")],
            "City Centre": [(1, "20.00"), (4, "15.00"), (8, "10.00")],
            # School runs are flat rate: no tiers
        }

        pricing_tiers = []
        for destination in destinations:
            for min_passengers, cost in tier_tables.get(destination.name, []):
                pricing_tiers.append(PricingTier(
                    location_id=destination.id,
                    min_passengers=min_passengers,
                    cost_per_person=Decimal(cost)
                ))
        db.add_all(pricing_tiers)
        db.flush()

        # 4. Create Trips for the coming week
        print("Creating trips...")
        tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).replace(minute=0, second=0, microsecond=0)
        trips = []
        for day in range(7):
            start = tomorrow + timedelta(days=day)
            for destination in destinations:
                trips.append(Trip(
                    destination_id=destination.id,
                    start_time=start,
                    end_time=start + timedelta(minutes=destination.default_duration or 60),
                    max_passengers=7
                ))
        db.add_all(trips)
        db.flush()

        # 5. Give every rider account some credits through the ledger
        print("Purchasing starter credits...")
        ledger = CreditLedger(db)
        for user in users[1:]:
            ledger.credit(
                user.id,
                Decimal("200.00"),
                "Starter credit pack",
                transaction_type=TransactionType.PURCHASE
            )

        # Commit all changes
        db.commit()
        print("✅ Successfully created seed data for Shuttle Booking Service!")
        print(f"Created:")
        print(f"  - {len(users)} users")
        print(f"  - {len(riders)} riders")
        print(f"  - {len(destinations)} destinations")
        print(f"  - {len(pricing_tiers)} pricing tiers")
        print(f"  - {len(trips)} trips")
        print(f"  - {len(users) - 1} credit purchases")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
