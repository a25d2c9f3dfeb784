# routes_wallets.py
"""
Wallet endpoints. Balances in every response are computed from the ledger.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.deps import AuthUser, get_db, get_ledger, require_auth
from app.errors import NotFoundOrForbidden
from app.responses import NO_STORE, ok
from app.schemas import WalletCreate, WalletUpdate
from app.services import wallets as wallet_service
from app.services.ledger import Ledger

router = APIRouter(prefix="/wallets")


@router.get("")
def list_wallets(
    include_inactive: bool = Query(False, alias="includeInactive"),
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    data = wallet_service.list_wallets(db, user.id, include_inactive=include_inactive)
    return ok(data, "Wallets retrieved successfully", headers=NO_STORE)


@router.post("")
def create_wallet(
    body: WalletCreate,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    data = wallet_service.create_wallet(
        ledger,
        user.id,
        body.name,
        body.type,
        balance=body.balance,
        color=body.color,
        icon=body.icon,
    )
    return ok(data, "Wallet created successfully", status_code=201)


@router.put("/{wallet_id}")
def update_wallet(
    wallet_id: int,
    body: WalletUpdate,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    data = wallet_service.update_wallet(
        ledger,
        user.id,
        wallet_id,
        name=body.name,
        type=body.type,
        color=body.color,
        icon=body.icon,
        balance=body.balance,
    )
    return ok(data, "Wallet updated successfully")


@router.delete("/{wallet_id}")
def delete_wallet(
    wallet_id: int,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    if not wallet_service.deactivate_wallet(ledger, user.id, wallet_id):
        raise NotFoundOrForbidden("Wallet not found or access denied")
    return ok({"id": wallet_id}, "Wallet deleted successfully")


@router.get("/{wallet_id}/savings")
def wallet_savings(
    wallet_id: int,
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    data = wallet_service.wallet_savings_summary(db, user.id, wallet_id)
    return ok(data, "Wallet savings retrieved successfully", headers=NO_STORE)
