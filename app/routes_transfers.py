# routes_transfers.py
"""
Wallet-to-wallet transfers: one request, two ledger rows, all or nothing.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import AuthUser, get_db, get_ledger, require_auth
from app.responses import NO_STORE, ok
from app.schemas import WalletTransferCreate
from app.services.ledger import Ledger
from app.services.transfers import create_wallet_transfer, list_wallet_transfers

router = APIRouter(prefix="/wallet-transfers")


@router.post("")
def create_transfer(
    body: WalletTransferCreate,
    user: AuthUser = Depends(require_auth),
    ledger: Ledger = Depends(get_ledger),
):
    data = create_wallet_transfer(
        ledger,
        user.id,
        body.from_wallet_id,
        body.to_wallet_id,
        body.amount,
        description=body.description,
    )
    return ok(data, "Transfer completed successfully", status_code=201)


@router.get("")
def list_transfers(
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return ok(list_wallet_transfers(db, user.id), "Transfers retrieved successfully", headers=NO_STORE)
