"""
Credit ledger.

Balances are a cached projection of the transaction log. Every mutation locks
the user's balance row, appends exactly one transaction and moves the cached
balance in the same flush, so both land (or roll back) together with the
caller's transaction. The ledger never commits on its own.

``reconcile`` compares the cached balance with the sum of the log and can
rewrite it from the log when they drift.
"""

from typing import List, Optional, Tuple
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session

from shuttle.credits.schemas import TransactionType, ReconciliationEntry, ReconciliationReport
from shuttle.exceptions import InsufficientCredits, UserNotFound
from shuttle.logger import get_logger
from shuttle.models import CreditBalance, CreditTransaction, User
from shuttle.pricing.service import to_credits

logger = get_logger(__name__)

ZERO = Decimal("0.00")


class CreditLedger:
    """Atomic balance mutation paired with an append-only transaction log"""

    def __init__(self, db: Session):
        self.db = db

    # ---------- reads ----------

    def get_balance(self, user_id: int) -> Decimal:
        balance = self.db.query(CreditBalance).filter(CreditBalance.user_id == user_id).first()
        if balance is None:
            return ZERO
        return to_credits(balance.credits)

    def require_funds(self, user_id: int, amount: Decimal, exempt: bool = False) -> None:
        """Raise InsufficientCredits without touching anything"""
        if exempt:
            return
        available = self.get_balance(user_id)
        if available < to_credits(amount):
            raise InsufficientCredits(to_credits(amount), available)

    def list_transactions(
        self,
        user_id: int,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[CreditTransaction], int]:
        query = self.db.query(CreditTransaction).filter(CreditTransaction.user_id == user_id)
        total = query.count()
        transactions = query.order_by(
            CreditTransaction.created_at.desc(), CreditTransaction.id.desc()
        ).offset((page - 1) * page_size).limit(page_size).all()
        return transactions, total

    def ledger_total(self, user_id: int) -> Decimal:
        total = self.db.query(
            func.coalesce(func.sum(CreditTransaction.amount), 0)
        ).filter(CreditTransaction.user_id == user_id).scalar()
        return to_credits(total or 0)

    # ---------- mutations ----------

    def debit(
        self,
        user_id: int,
        amount: Decimal,
        description: str,
        exempt: bool = False,
        booking_id: Optional[int] = None,
        trip_id: Optional[int] = None
    ) -> CreditTransaction:
        """Spend credits. Exempt accounts (admins) may go below zero."""
        amount = to_credits(amount)
        if amount <= 0:
            raise ValueError("Debit amount must be positive")

        balance = self._lock_balance(user_id)
        available = to_credits(balance.credits)
        if not exempt and available < amount:
            raise InsufficientCredits(amount, available)

        return self._append(balance, TransactionType.USAGE, -amount, description, booking_id, trip_id)

    def credit(
        self,
        user_id: int,
        amount: Decimal,
        description: str,
        transaction_type: TransactionType = TransactionType.REFUND,
        booking_id: Optional[int] = None,
        trip_id: Optional[int] = None
    ) -> CreditTransaction:
        """Add credits (refund, purchase or adjustment)"""
        amount = to_credits(amount)
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        if transaction_type == TransactionType.USAGE:
            raise ValueError("Usage transactions must go through debit()")

        balance = self._lock_balance(user_id)
        return self._append(balance, transaction_type, amount, description, booking_id, trip_id)

    def adjust(self, user_id: int, amount: Decimal, description: str) -> CreditTransaction:
        """Signed admin adjustment that never drives a balance below zero"""
        amount = to_credits(amount)
        if amount == 0:
            raise ValueError("Adjustment amount must be non-zero")

        balance = self._lock_balance(user_id)
        if to_credits(balance.credits) + amount < 0:
            raise ValueError("Cannot reduce credits below zero")

        return self._append(balance, TransactionType.ADMIN_ADJUSTMENT, amount, description, None, None)

    # ---------- reconciliation ----------

    def reconcile(self, user_id: int, repair: bool = False) -> ReconciliationEntry:
        """Compare a cached balance with its transaction log.

        With ``repair`` the balance row is locked before anything is read, so
        a mutation committing meanwhile cannot be overwritten by a stale total.
        """
        if repair:
            balance = self._lock_balance(user_id)
        else:
            balance = self.db.query(CreditBalance).filter(CreditBalance.user_id == user_id).first()
        cached = to_credits(balance.credits) if balance is not None else ZERO
        total = self.ledger_total(user_id)

        entry = ReconciliationEntry(
            user_id=user_id,
            cached_balance=cached,
            ledger_total=total,
            difference=cached - total,
            consistent=cached == total
        )

        if not entry.consistent:
            logger.warning(
                "Credit balance drift for user %s: cached %s, ledger %s",
                user_id, cached, total,
                extra={"user_id": user_id}
            )
            if repair:
                balance.credits = total
                self.db.flush()
                entry.repaired = True

        return entry

    def reconcile_all(self, repair: bool = False) -> ReconciliationReport:
        """Check every user that has a balance row or a transaction"""
        user_ids = {row[0] for row in self.db.query(CreditBalance.user_id).all()}
        user_ids.update(
            row[0] for row in self.db.query(CreditTransaction.user_id).distinct().all()
        )

        mismatches = []
        for user_id in sorted(user_ids):
            entry = self.reconcile(user_id, repair=repair)
            if not entry.consistent:
                mismatches.append(entry)

        return ReconciliationReport(checked=len(user_ids), mismatches=mismatches)

    # ---------- locking ----------

    def lock_balances(self, user_ids) -> None:
        """Lock several balance rows, always in ascending user id order.

        Transactions that touch more than one balance call this first so that
        two of them never wait on each other's rows in opposite order.
        """
        for user_id in sorted(set(user_ids)):
            self._lock_balance(user_id)

    # ---------- internals ----------

    def _lock_balance(self, user_id: int) -> CreditBalance:
        """SELECT ... FOR UPDATE the balance row, creating it on first use"""
        balance = self.db.query(CreditBalance).filter(
            CreditBalance.user_id == user_id
        ).with_for_update().populate_existing().first()

        if balance is None:
            if not self.db.query(User.id).filter(User.id == user_id).first():
                raise UserNotFound(user_id)
            balance = CreditBalance(user_id=user_id, credits=ZERO)
            self.db.add(balance)
            self.db.flush()

        return balance

    def _append(
        self,
        balance: CreditBalance,
        transaction_type: TransactionType,
        amount: Decimal,
        description: str,
        booking_id: Optional[int],
        trip_id: Optional[int]
    ) -> CreditTransaction:
        transaction = CreditTransaction(
            user_id=balance.user_id,
            type=transaction_type.value,
            amount=amount,
            description=description,
            booking_id=booking_id,
            trip_id=trip_id
        )
        balance.credits = to_credits(balance.credits) + amount
        self.db.add(transaction)
        self.db.flush()

        logger.debug(
            "%s of %s for user %s",
            transaction_type.value, amount, balance.user_id,
            extra={"user_id": balance.user_id, "amount": str(amount)}
        )
        return transaction
