from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    """Credit transaction type enumeration"""
    USAGE = "USAGE"
    REFUND = "REFUND"
    PURCHASE = "PURCHASE"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class CreditTransaction(BaseModel):
    """Immutable ledger entry; amount is signed (usage is negative)"""
    id: int
    user_id: int
    type: TransactionType
    amount: Decimal
    description: Optional[str] = None
    booking_id: Optional[int] = None
    trip_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreditBalanceResponse(BaseModel):
    user_id: int
    credits: Decimal


class TransactionHistory(BaseModel):
    transactions: List[CreditTransaction]
    total: int
    page: int
    per_page: int


class CreditPurchaseRequest(BaseModel):
    """Credits bought with real money (payment capture happens upstream)"""
    amount: Decimal = Field(..., gt=0)
    description: str = "Credit purchase"


class CreditAdjustmentRequest(BaseModel):
    """Admin correction; negative amounts remove credits"""
    user_id: int
    amount: Decimal
    description: str = Field(..., min_length=1)


class ReconciliationEntry(BaseModel):
    user_id: int
    cached_balance: Decimal
    ledger_total: Decimal
    difference: Decimal
    consistent: bool
    repaired: bool = False


class ReconciliationReport(BaseModel):
    checked: int
    mismatches: List[ReconciliationEntry]
