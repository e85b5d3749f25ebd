from decimal import Decimal

import pytest

from shuttle.credits.ledger import CreditLedger
from shuttle.credits.schemas import TransactionType
from shuttle.database import SessionLocal
from shuttle.exceptions import InsufficientCredits, UserNotFound
from shuttle.models import CreditBalance, CreditTransaction


def _transaction_count(db, user_id):
    return db.query(CreditTransaction).filter(CreditTransaction.user_id == user_id).count()


def test_debit_writes_negative_usage_and_moves_balance(db, factory):
    user = factory.user(credits="100")
    ledger = CreditLedger(db)

    transaction = ledger.debit(user.id, Decimal("30"), "Booking", trip_id=None)
    db.commit()

    assert transaction.type == TransactionType.USAGE.value
    assert transaction.amount == Decimal("-30.00")
    assert ledger.get_balance(user.id) == Decimal("70.00")


def test_insufficient_credits_leaves_no_rows(db, factory):
    user = factory.user(credits="20")
    ledger = CreditLedger(db)
    before = _transaction_count(db, user.id)

    with pytest.raises(InsufficientCredits) as excinfo:
        ledger.debit(user.id, Decimal("50"), "Booking")
    db.rollback()

    assert excinfo.value.required == Decimal("50.00")
    assert excinfo.value.available == Decimal("20.00")
    assert _transaction_count(db, user.id) == before
    assert ledger.get_balance(user.id) == Decimal("20.00")


def test_require_funds_does_not_touch_anything(db, factory):
    user = factory.user(credits="10")
    ledger = CreditLedger(db)

    with pytest.raises(InsufficientCredits):
        ledger.require_funds(user.id, Decimal("10.01"))

    ledger.require_funds(user.id, Decimal("10.00"))
    ledger.require_funds(user.id, Decimal("500"), exempt=True)
    assert _transaction_count(db, user.id) == 1


def test_exempt_debit_may_go_negative(db, factory):
    admin = factory.user(name="Admin", role="ADMIN")
    ledger = CreditLedger(db)

    ledger.debit(admin.id, Decimal("40"), "Admin booking", exempt=True)
    db.commit()

    assert ledger.get_balance(admin.id) == Decimal("-40.00")
    assert ledger.reconcile(admin.id).consistent


def test_credit_rejects_usage_and_non_positive_amounts(db, factory):
    user = factory.user()
    ledger = CreditLedger(db)

    with pytest.raises(ValueError):
        ledger.credit(user.id, Decimal("5"), "Oops", transaction_type=TransactionType.USAGE)
    with pytest.raises(ValueError):
        ledger.credit(user.id, Decimal("0"), "Nothing")


def test_credit_unknown_user(db):
    with pytest.raises(UserNotFound):
        CreditLedger(db).credit(12345, Decimal("5"), "Ghost")


def test_adjust_cannot_drive_balance_below_zero(db, factory):
    user = factory.user(credits="15")
    ledger = CreditLedger(db)

    with pytest.raises(ValueError):
        ledger.adjust(user.id, Decimal("-20"), "Chargeback")

    ledger.adjust(user.id, Decimal("-15"), "Chargeback")
    db.commit()
    assert ledger.get_balance(user.id) == Decimal("0.00")


def test_balance_matches_log_after_mixed_mutations(db, factory):
    user = factory.user(credits="100")
    ledger = CreditLedger(db)

    ledger.debit(user.id, Decimal("50"), "Booking")
    ledger.credit(user.id, Decimal("10"), "Refund")
    ledger.adjust(user.id, Decimal("2.50"), "Goodwill")
    ledger.credit(user.id, Decimal("25"), "Top up", transaction_type=TransactionType.PURCHASE)
    ledger.debit(user.id, Decimal("37.50"), "Booking")
    db.commit()

    assert ledger.get_balance(user.id) == Decimal("50.00")
    assert ledger.ledger_total(user.id) == Decimal("50.00")
    assert ledger.reconcile(user.id).consistent


def test_list_transactions_newest_first_with_paging(db, factory):
    user = factory.user(credits="100")
    ledger = CreditLedger(db)
    ledger.debit(user.id, Decimal("10"), "First")
    ledger.debit(user.id, Decimal("20"), "Second")
    db.commit()

    transactions, total = ledger.list_transactions(user.id, page=1, page_size=2)

    assert total == 3
    assert [t.description for t in transactions] == ["Second", "First"]


def test_reconcile_detects_and_repairs_drift(db, factory):
    user = factory.user(credits="100")
    balance = db.query(CreditBalance).filter(CreditBalance.user_id == user.id).one()
    balance.credits = Decimal("999.00")
    db.commit()

    ledger = CreditLedger(db)
    entry = ledger.reconcile(user.id)

    assert not entry.consistent
    assert entry.difference == Decimal("899.00")
    assert entry.repaired is False

    report = ledger.reconcile_all(repair=True)
    db.commit()

    assert report.checked == 1
    assert report.mismatches[0].repaired is True
    assert ledger.get_balance(user.id) == Decimal("100.00")
    assert ledger.reconcile(user.id).consistent


def test_repair_after_concurrent_credit_keeps_balance_on_the_log(db, factory):
    user = factory.user(credits="100")
    ledger = CreditLedger(db)
    assert ledger.get_balance(user.id) == Decimal("100.00")

    other = SessionLocal()
    try:
        CreditLedger(other).credit(user.id, Decimal("10"), "Refund from another request")
        other.commit()
    finally:
        other.close()

    entry = ledger.reconcile(user.id, repair=True)
    db.commit()

    assert entry.consistent
    assert entry.repaired is False
    assert ledger.get_balance(user.id) == Decimal("110.00")
    assert ledger.ledger_total(user.id) == Decimal("110.00")


class RecordingLedger(CreditLedger):
    def __init__(self, db):
        super().__init__(db)
        self.locked = []

    def _lock_balance(self, user_id):
        self.locked.append(user_id)
        return super()._lock_balance(user_id)


def test_lock_balances_goes_in_user_id_order(db, factory):
    users = [factory.user(name=f"User {i}", credits="10") for i in range(3)]
    ledger = RecordingLedger(db)

    ledger.lock_balances([users[2].id, users[0].id, users[2].id, users[1].id])

    assert ledger.locked == [users[0].id, users[1].id, users[2].id]
