import os
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

# The engine is built on import, so the database must be chosen first
_DB_DIR = tempfile.mkdtemp(prefix="shuttle-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'shuttle.db')}"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from shuttle import models  # noqa: E402
from shuttle.config import Settings  # noqa: E402
from shuttle.credits.ledger import CreditLedger  # noqa: E402
from shuttle.credits.schemas import TransactionType  # noqa: E402
from shuttle.database import Base, SessionLocal, engine  # noqa: E402


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def quiet_settings():
    """Settings with every post-commit side effect switched off"""
    return Settings(
        CALENDAR_SYNC_ENABLED=False,
        CALENDAR_AVAILABILITY_ENABLED=False,
        REFUND_NOTIFICATIONS_ENABLED=False,
    )


class Factory:
    """Commits test rows through a real session"""

    def __init__(self, db):
        self.db = db
        self._emails = 0

    def user(self, name="Rider", credits="0", role="USER", status="ACTIVE"):
        self._emails += 1
        user = models.User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}.{self._emails}@example.com",
            role=role,
            status=status,
        )
        self.db.add(user)
        self.db.flush()

        if Decimal(credits) > 0:
            CreditLedger(self.db).credit(
                user.id, Decimal(credits), "Test credits", transaction_type=TransactionType.PURCHASE
            )
        self.db.commit()
        return user

    def rider(self, user, name="Kid"):
        rider = models.Rider(user_id=user.id, name=name)
        self.db.add(rider)
        self.db.commit()
        return rider

    def location(self, name="Airport", tiers=((1, "50.00"), (3, "40.00"), (5, "30.00"))):
        location = models.Location(name=name, default_duration=60)
        self.db.add(location)
        self.db.flush()
        for min_passengers, cost in tiers:
            self.db.add(models.PricingTier(
                location_id=location.id,
                min_passengers=min_passengers,
                cost_per_person=Decimal(cost),
            ))
        self.db.commit()
        return location

    def trip(self, location, max_passengers=7, start_time=None):
        start_time = start_time or datetime(2030, 1, 15, 8, 0)
        trip = models.Trip(
            destination_id=location.id,
            start_time=start_time,
            end_time=start_time + timedelta(hours=1),
            max_passengers=max_passengers,
        )
        self.db.add(trip)
        self.db.commit()
        return trip


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from shuttle.main import app

    return TestClient(app)
