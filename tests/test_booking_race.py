import threading
from decimal import Decimal

from shuttle.bookings.booking_service import BookingService
from shuttle.bookings.locks import TripLockRegistry
from shuttle.bookings.schemas import BookingCreateRequest
from shuttle.credits.ledger import CreditLedger
from shuttle.credits.schemas import TransactionType
from shuttle.database import SessionLocal
from shuttle.exceptions import TripBusy
from shuttle.models import Booking, CreditTransaction, Trip


def test_parallel_bookings_never_double_refund(db, factory, quiet_settings):
    """Two workers in one process push a trip from 2 to 4 passengers.

    Runs on SQLite, which ignores SELECT ... FOR UPDATE, so only the
    in-process TripLockRegistry is exercised here. The Trip row lock that
    serialises bookings across worker processes needs a PostgreSQL run.
    """
    trip = factory.trip(factory.location())
    early = [factory.user(name=f"Early {i}", credits="100") for i in range(2)]
    late = [factory.user(name=f"Late {i}", credits="100") for i in range(2)]
    locks = TripLockRegistry()

    service = BookingService(db, settings=quiet_settings, locks=locks)
    for user in early:
        service.create_booking(BookingCreateRequest(trip_id=trip.id, user_id=user.id))

    barrier = threading.Barrier(len(late))
    errors = []

    def book(user_id):
        session = SessionLocal()
        try:
            worker = BookingService(session, settings=quiet_settings, locks=locks)
            barrier.wait()
            worker.create_booking(BookingCreateRequest(trip_id=trip.id, user_id=user_id))
        except Exception as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=book, args=(user.id,)) for user in late]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []

    db.expire_all()
    assert db.get(Trip, trip.id).current_passengers == 4

    bookings = db.query(Booking).filter(Booking.trip_id == trip.id).all()
    assert {booking.credits_cost for booking in bookings} == {Decimal("40.00")}

    refunds = db.query(CreditTransaction).filter(
        CreditTransaction.trip_id == trip.id,
        CreditTransaction.type == TransactionType.REFUND.value
    ).all()
    assert sum((r.amount for r in refunds), Decimal("0.00")) == Decimal("20.00")
    assert len(refunds) == 2

    ledger = CreditLedger(db)
    for user in early + late:
        assert ledger.get_balance(user.id) == Decimal("60.00")
        assert ledger.reconcile(user.id).consistent


def test_lock_timeout_raises_trip_busy():
    locks = TripLockRegistry()
    held = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold(7):
            held.set()
            release.wait(timeout=10)

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(timeout=10)

    try:
        assert locks.is_locked(7)
        try:
            with locks.hold(7, timeout=0.05):
                raise AssertionError("lock should have been busy")
        except TripBusy as e:
            assert e.trip_id == 7
    finally:
        release.set()
        thread.join(timeout=10)

    assert not locks.is_locked(7)
