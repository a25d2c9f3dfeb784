# routes_transactions.py
"""
Ledger endpoints: create, list, read, edit and delete transactions, plus
per-day trends for charts.

Every response is marked no-store so clients refetching after an update
hint never get a cached list back.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.deps import AuthUser, get_db, get_ledger, require_auth
from app.errors import NotFoundOrForbidden, ValidationError
from app.responses import NO_STORE, ok
from app.schemas import TransactionCreate, TransactionUpdate
from app.services.balances import TRANSACTION_TYPES, TRANSFER
from app.services.ledger import Ledger
from app.services.trends import transaction_trends
from config import TRANSACTIONS_DEFAULT_LIMIT

router = APIRouter(prefix="/transactions")


def _check_type(type: Optional[str]) -> None:
    if type is not None and type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {type!r}", details={"allowed": list(TRANSACTION_TYPES)})


@router.post("")
def create_transaction(
    body: TransactionCreate,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    if body.type == TRANSFER:
        raise ValidationError("Use /wallet-transfers to create transfers")

    tx = ledger.create_transaction(
        user.id,
        body.description,
        body.amount,
        body.type,
        wallet_id=body.wallet_id,
        category=body.category,
        source=body.source,
        goal_name=body.goal_name,
        asset_name=body.asset_name,
        date=body.date,
    )
    return ok(tx.to_dict(), "Transaction created successfully", status_code=201, headers=NO_STORE)


@router.get("")
def list_transactions(
    limit: int = Query(TRANSACTIONS_DEFAULT_LIMIT, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    type: Optional[str] = Query(None),
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    _check_type(type)
    rows = ledger.get_user_transactions(user.id, limit=limit, offset=offset, type=type)
    return ok([tx.to_dict() for tx in rows], "Transactions retrieved successfully", headers=NO_STORE)


@router.get("/trends")
def trends(
    range: str = Query("month"),
    type: Optional[str] = Query(None),
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    data = transaction_trends(db, user.id, range_name=range, type=type)
    return ok(data, "Trends retrieved successfully", headers=NO_STORE)


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: int,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    tx = ledger.get_transaction(user.id, transaction_id)
    if tx is None:
        raise NotFoundOrForbidden("Transaction not found")
    return ok(tx.to_dict(), "Transaction retrieved successfully", headers=NO_STORE)


@router.put("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    body: TransactionUpdate,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    tx = ledger.update_transaction(user.id, transaction_id, **fields)
    return ok(tx.to_dict(), "Transaction updated successfully", headers=NO_STORE)


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    if not ledger.delete_transaction(user.id, transaction_id):
        raise NotFoundOrForbidden("Transaction not found")
    return ok({"id": transaction_id}, "Transaction deleted successfully", headers=NO_STORE)
