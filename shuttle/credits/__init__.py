"""
Credit Ledger Module

Credits are the internal currency riders buy and spend on bookings. Balances
are cached per user and always move together with an immutable transaction
record (USAGE, REFUND, PURCHASE, ADMIN_ADJUSTMENT).

Key Components:
- ledger.py: CreditLedger with debit/credit/adjust and reconciliation
- router.py: FastAPI endpoints for balances, history, purchases and admin tools
- schemas.py: Pydantic models and the TransactionType enumeration
"""

from .router import router
from .ledger import CreditLedger
from .schemas import TransactionType, ReconciliationEntry, ReconciliationReport

__all__ = [
    "router",
    "CreditLedger",
    "TransactionType",
    "ReconciliationEntry",
    "ReconciliationReport"
]
