from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from shuttle.database import get_db
from shuttle.exceptions import NotFoundError
from shuttle.credits.ledger import CreditLedger
from shuttle.credits.schemas import (
    CreditBalanceResponse, CreditTransaction, TransactionHistory, CreditPurchaseRequest,
    CreditAdjustmentRequest, ReconciliationEntry, ReconciliationReport, TransactionType
)

router = APIRouter()

@router.get("/admin/reconcile", response_model=ReconciliationReport)
def reconcile_all_balances(
    repair: bool = Query(False, description="Rewrite drifted balances from the ledger"),
    db: Session = Depends(get_db)
):
    """Check every cached balance against its transaction log"""

    ledger = CreditLedger(db)
    report = ledger.reconcile_all(repair=repair)
    if repair:
        db.commit()
    return report

@router.post("/admin/adjust", response_model=CreditTransaction)
def adjust_credits(
    adjustment: CreditAdjustmentRequest,
    db: Session = Depends(get_db)
):
    """Add or remove credits on behalf of an admin"""

    ledger = CreditLedger(db)

    try:
        transaction = ledger.adjust(adjustment.user_id, adjustment.amount, adjustment.description)
        db.commit()
        db.refresh(transaction)
        return transaction
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.get("/{user_id}", response_model=CreditBalanceResponse)
def get_credit_balance(
    user_id: int,
    db: Session = Depends(get_db)
):
    """Get a user's credit balance"""

    ledger = CreditLedger(db)
    return CreditBalanceResponse(user_id=user_id, credits=ledger.get_balance(user_id))

@router.get("/{user_id}/transactions", response_model=TransactionHistory)
def get_credit_transactions(
    user_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Transactions per page"),
    db: Session = Depends(get_db)
):
    """Get a user's credit history, newest first"""

    ledger = CreditLedger(db)
    transactions, total = ledger.list_transactions(user_id, page, page_size)

    return TransactionHistory(
        transactions=transactions,
        total=total,
        page=page,
        per_page=page_size
    )

@router.post("/{user_id}/purchase", response_model=CreditTransaction)
def purchase_credits(
    user_id: int,
    purchase: CreditPurchaseRequest,
    db: Session = Depends(get_db)
):
    """Record credits bought by a user"""

    ledger = CreditLedger(db)

    try:
        transaction = ledger.credit(
            user_id,
            purchase.amount,
            purchase.description,
            transaction_type=TransactionType.PURCHASE
        )
        db.commit()
        db.refresh(transaction)
        return transaction
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.get("/{user_id}/reconcile", response_model=ReconciliationEntry)
def reconcile_user_balance(
    user_id: int,
    repair: bool = Query(False, description="Rewrite the balance from the ledger"),
    db: Session = Depends(get_db)
):
    """Compare a user's cached balance with their transaction log"""

    ledger = CreditLedger(db)

    try:
        entry = ledger.reconcile(user_id, repair=repair)
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    # a repair holds the row lock even when nothing drifted
    db.commit()
    return entry
