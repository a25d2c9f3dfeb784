# app/services/transfers.py
"""
Wallet-to-wallet transfers.

A transfer is two ledger rows written in one database transaction:
- outgoing leg: -amount on the source wallet
- incoming leg: +amount on the destination wallet

Both carry the same transfer_group_id; history is rebuilt from that id,
never by matching amounts and timestamps.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import InsufficientBalance, InternalError, NotFoundOrForbidden, ValidationError
from app.log import get_logger
from app.services.balances import TRANSFER, calculate_wallet_balance
from app.services.ledger import Ledger, parse_amount
from models import Transaction, Wallet

logger = get_logger(__name__)

WALLET_TO_WALLET = "wallet_to_wallet"


def create_wallet_transfer(
    ledger: Ledger,
    user_id: int,
    from_wallet_id: int,
    to_wallet_id: int,
    amount,
    description: Optional[str] = None,
) -> dict:
    if not from_wallet_id or not to_wallet_id or amount is None:
        raise ValidationError("Missing required fields: fromWalletId, toWalletId, amount")

    amount = parse_amount(amount)
    if amount <= 0:
        raise ValidationError("Amount must be a positive number")
    if from_wallet_id == to_wallet_id:
        raise ValidationError("Cannot transfer to the same wallet")

    db = ledger.db
    wallets = {
        w.id: w
        for w in db.query(Wallet)
        .filter(
            Wallet.id.in_((from_wallet_id, to_wallet_id)),
            Wallet.user_id == user_id,
            Wallet.is_active.is_(True),
        )
        .all()
    }
    if len(wallets) != 2:
        raise NotFoundOrForbidden("One or both wallets not found or do not belong to user")
    from_wallet = wallets[from_wallet_id]
    to_wallet = wallets[to_wallet_id]

    available = calculate_wallet_balance(db, user_id, from_wallet.id)
    if available < amount:
        raise InsufficientBalance(
            f"Insufficient balance in {from_wallet.name}. Available: {available}, Required: {amount}",
            details={"available": float(available), "required": float(amount)},
        )

    note = (description or "").strip()
    suffix = f": {note}" if note else ""
    group_id = str(uuid.uuid4())
    now = datetime.now()

    try:
        with ledger.atomic():
            outgoing = ledger.create_transaction(
                user_id,
                f"Transfer to {to_wallet.name}{suffix}",
                -amount,
                TRANSFER,
                wallet_id=from_wallet.id,
                transfer_type=WALLET_TO_WALLET,
                transfer_group_id=group_id,
                date=now,
            )
            incoming = ledger.create_transaction(
                user_id,
                f"Transfer from {from_wallet.name}{suffix}",
                amount,
                TRANSFER,
                wallet_id=to_wallet.id,
                transfer_type=WALLET_TO_WALLET,
                transfer_group_id=group_id,
                date=now,
            )
    except SQLAlchemyError as exc:
        logger.error("wallet_transfer_failed", user_id=user_id, transfer_group_id=group_id, error=repr(exc))
        raise InternalError("Failed to process transfer", details=str(exc)) from exc

    logger.info(
        "wallet_transfer_completed",
        user_id=user_id,
        transfer_group_id=group_id,
        from_wallet_id=from_wallet.id,
        to_wallet_id=to_wallet.id,
        amount=str(amount),
    )

    return {
        "transferGroupId": group_id,
        "fromWalletId": from_wallet.id,
        "toWalletId": to_wallet.id,
        "amount": float(amount),
        "description": note or f"Transfer from {from_wallet.name} to {to_wallet.name}",
        "transferType": WALLET_TO_WALLET,
        "outgoing": outgoing.to_dict(),
        "incoming": incoming.to_dict(),
    }


def list_wallet_transfers(db: Session, user_id: int) -> List[dict]:
    legs = (
        db.query(Transaction)
        .filter(
            Transaction.user_id == user_id,
            Transaction.type == TRANSFER,
            Transaction.transfer_group_id.isnot(None),
        )
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )

    groups: Dict[str, Dict[str, Transaction]] = {}
    order: List[str] = []
    for leg in legs:
        if leg.transfer_group_id not in groups:
            groups[leg.transfer_group_id] = {}
            order.append(leg.transfer_group_id)
        side = "outgoing" if leg.amount < 0 else "incoming"
        groups[leg.transfer_group_id][side] = leg

    wallet_names = {
        w.id: w.name for w in db.query(Wallet).filter(Wallet.user_id == user_id).all()
    }

    transfers = []
    for group_id in order:
        pair = groups[group_id]
        outgoing = pair.get("outgoing")
        incoming = pair.get("incoming")
        leg = outgoing or incoming
        from_id = outgoing.wallet_id if outgoing else None
        to_id = incoming.wallet_id if incoming else None
        transfers.append(
            {
                "transferGroupId": group_id,
                "fromWalletId": from_id,
                "toWalletId": to_id,
                "fromWalletName": wallet_names.get(from_id),
                "toWalletName": wallet_names.get(to_id),
                "amount": abs(float(leg.amount)),
                "transferType": leg.transfer_type,
                "date": leg.date.isoformat(),
                "complete": outgoing is not None and incoming is not None,
            }
        )
    return transfers
