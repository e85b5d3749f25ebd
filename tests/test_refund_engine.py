from decimal import Decimal

from shuttle.bookings.booking_service import BookingService, REFUND_WARNING
from shuttle.bookings.refund_service import RetroactiveRefundEngine
from shuttle.bookings.schemas import BookingCreateRequest
from shuttle.credits.ledger import CreditLedger
from shuttle.credits.schemas import TransactionType
from shuttle.models import Booking, CreditTransaction


class FlakyLedger(CreditLedger):
    """Ledger that refuses to credit one particular user"""

    def __init__(self, db, failing_user_id):
        super().__init__(db)
        self.failing_user_id = failing_user_id
        self.credit_calls = []

    def credit(self, user_id, amount, description, **kwargs):
        self.credit_calls.append((user_id, amount))
        if user_id == self.failing_user_id:
            raise RuntimeError("ledger offline")
        return super().credit(user_id, amount, description, **kwargs)


def _book(service, trip, user, passenger_count=1):
    return service.create_booking(BookingCreateRequest(
        trip_id=trip.id, user_id=user.id, passenger_count=passenger_count
    ))


def _refund_total(db, trip_id):
    transactions = db.query(CreditTransaction).filter(
        CreditTransaction.trip_id == trip_id,
        CreditTransaction.type == TransactionType.REFUND.value
    ).all()
    return sum((t.amount for t in transactions), Decimal("0.00"))


def test_third_booking_refunds_first_two(db, factory, quiet_settings):
    trip = factory.trip(factory.location())
    users = [factory.user(name=f"User {i}", credits="100") for i in range(3)]
    service = BookingService(db, settings=quiet_settings)

    first = _book(service, trip, users[0])
    second = _book(service, trip, users[1])
    third = _book(service, trip, users[2])

    assert first.refunds is None
    assert second.refunds.refunds_processed == 0
    assert third.cost_per_person == Decimal("40.00")
    assert third.refunds.success is True
    assert third.refunds.refunds_processed == 2
    assert third.refunds.total_refunded == Decimal("20.00")
    assert {detail.refund_amount for detail in third.refunds.refund_details} == {Decimal("10.00")}

    ledger = CreditLedger(db)
    assert ledger.get_balance(users[0].id) == Decimal("60.00")
    assert ledger.get_balance(users[1].id) == Decimal("60.00")
    assert ledger.get_balance(users[2].id) == Decimal("60.00")


def test_sweep_is_idempotent(db, factory, quiet_settings):
    trip = factory.trip(factory.location())
    users = [factory.user(name=f"User {i}", credits="100") for i in range(3)]
    service = BookingService(db, settings=quiet_settings)
    for user in users:
        last = _book(service, trip, user)

    engine = RetroactiveRefundEngine(db, settings=quiet_settings)
    again = engine.process_retroactive_refunds(trip.id, last.booking.id)
    db.commit()

    assert again.success is True
    assert again.refunds_processed == 0
    assert _refund_total(db, trip.id) == Decimal("20.00")


def test_refunds_conserve_credits_and_never_raise_costs(db, factory, quiet_settings):
    trip = factory.trip(factory.location())
    users = [factory.user(name=f"User {i}", credits="100") for i in range(5)]
    service = BookingService(db, settings=quiet_settings)

    seen_costs = {}
    for user in users:
        _book(service, trip, user)
        for booking in db.query(Booking).filter(Booking.trip_id == trip.id).all():
            previous = seen_costs.get(booking.id)
            if previous is not None:
                assert booking.credits_cost <= previous
            seen_costs[booking.id] = booking.credits_cost

    bookings = db.query(Booking).filter(Booking.trip_id == trip.id).all()
    assert {booking.credits_cost for booking in bookings} == {Decimal("30.00")}

    expected = sum((b.original_cost - b.credits_cost for b in bookings), Decimal("0.00"))
    assert expected == Decimal("60.00")
    assert _refund_total(db, trip.id) == expected

    ledger = CreditLedger(db)
    for user in users:
        assert ledger.reconcile(user.id).consistent


def test_multi_passenger_booking_refunded_per_seat(db, factory, quiet_settings):
    trip = factory.trip(factory.location())
    family = factory.user(name="Family", credits="200")
    solo = factory.user(name="Solo", credits="100")
    service = BookingService(db, settings=quiet_settings)

    _book(service, trip, family, passenger_count=2)
    result = _book(service, trip, solo)

    assert result.cost_per_person == Decimal("40.00")
    assert result.refunds.refund_details[0].refund_amount == Decimal("20.00")
    assert result.refunds.refund_details[0].new_cost == Decimal("80.00")


def test_flat_rate_destination_refunds_nothing(db, factory, quiet_settings):
    trip = factory.trip(factory.location(name="School", tiers=()))
    users = [factory.user(name=f"User {i}", credits="10") for i in range(3)]
    service = BookingService(db, settings=quiet_settings)

    results = [_book(service, trip, user) for user in users]

    assert all(result.cost_per_person == Decimal("1.00") for result in results)
    assert all(result.refunds is None for result in results)


def test_one_failing_refund_does_not_stop_the_others(db, factory, quiet_settings):
    trip = factory.trip(factory.location())
    unlucky = factory.user(name="Unlucky", credits="100")
    lucky = factory.user(name="Lucky", credits="100")
    late = factory.user(name="Late", credits="100")

    ledger = FlakyLedger(db, failing_user_id=unlucky.id)
    service = BookingService(db, settings=quiet_settings, ledger=ledger)

    unlucky_booking = _book(service, trip, unlucky).booking
    _book(service, trip, lucky)
    result = _book(service, trip, late)

    assert result.refunds.refunds_processed == 1
    assert result.refunds.total_refunded == Decimal("10.00")
    assert len(result.refunds.errors) == 1
    assert result.refunds.errors[0].startswith(f"Booking {unlucky_booking.id}:")
    assert REFUND_WARNING in result.warnings

    db.expire_all()
    assert db.get(Booking, unlucky_booking.id).credits_cost == Decimal("50.00")
    assert CreditLedger(db).get_balance(unlucky.id) == Decimal("50.00")
    assert CreditLedger(db).get_balance(lucky.id) == Decimal("60.00")


def test_missing_trip_is_reported(db, quiet_settings):
    result = RetroactiveRefundEngine(db, settings=quiet_settings).process_retroactive_refunds(404, 1)

    assert result.success is False
    assert result.errors == ["Trip not found"]


def test_refund_history_lists_sweep_credits(db, factory, quiet_settings):
    trip = factory.trip(factory.location())
    users = [factory.user(name=f"User {i}", credits="100") for i in range(3)]
    service = BookingService(db, settings=quiet_settings)
    for user in users:
        _book(service, trip, user)

    history = RetroactiveRefundEngine(db).get_trip_refund_history(trip.id)

    assert len(history) == 2
    assert {entry.user_id for entry in history} == {users[0].id, users[1].id}
    assert all(entry.refund_amount == Decimal("10.00") for entry in history)


class LockOrderLedger(CreditLedger):
    def __init__(self, db):
        super().__init__(db)
        self.locked = []

    def _lock_balance(self, user_id):
        self.locked.append(user_id)
        return super()._lock_balance(user_id)


def test_balances_are_locked_in_user_id_order_not_booking_order(db, factory, quiet_settings):
    trip = factory.trip(factory.location())
    users = [factory.user(name=f"User {i}", credits="100") for i in range(3)]
    ledger = LockOrderLedger(db)
    service = BookingService(db, settings=quiet_settings, ledger=ledger)

    _book(service, trip, users[2])
    _book(service, trip, users[1])
    ledger.locked.clear()
    result = _book(service, trip, users[0])

    ordered_ids = sorted(user.id for user in users)
    assert ledger.locked[:3] == ordered_ids
    assert result.refunds.refunds_processed == 2
