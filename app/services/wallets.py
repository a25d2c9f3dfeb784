# app/services/wallets.py
"""
Wallet lifecycle. Balances never get written here: a starting balance or a
manual correction becomes a ledger transaction.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.errors import NotFoundOrForbidden, ValidationError
from app.log import get_logger
from app.services import notifier as events
from app.services.balances import (
    EXPENSE,
    INCOME,
    SAVINGS,
    ZERO,
    calculate_wallet_balance,
    wallets_with_balances,
)
from app.services.ledger import Ledger, parse_amount
from models import Transaction, Wallet

logger = get_logger(__name__)

BALANCE_ADJUSTMENT = "Balance Adjustment"


def get_owned_wallet(db: Session, user_id: int, wallet_id: int, active_only: bool = True) -> Wallet:
    query = db.query(Wallet).filter(Wallet.id == wallet_id, Wallet.user_id == user_id)
    if active_only:
        query = query.filter(Wallet.is_active.is_(True))
    wallet = query.first()
    if wallet is None:
        raise NotFoundOrForbidden("Wallet not found or access denied")
    return wallet


def wallet_with_balance(db: Session, wallet: Wallet) -> dict:
    data = wallet.to_dict()
    data["balance"] = float(calculate_wallet_balance(db, wallet.user_id, wallet.id))
    return data


def create_wallet(
    ledger: Ledger,
    user_id: int,
    name: str,
    type: str,
    balance=0,
    color: Optional[str] = None,
    icon: Optional[str] = None,
) -> dict:
    if not name or not name.strip() or not type or not type.strip():
        raise ValidationError("Missing required fields: name, type")
    starting = parse_amount(balance)
    if starting < 0:
        raise ValidationError("Balance must be a non-negative number")

    db = ledger.db
    with ledger.atomic():
        wallet = Wallet(
            user_id=user_id,
            name=name.strip(),
            type=type.strip(),
            color=color or "#10B981",
            icon=icon or "wallet",
            is_active=True,
        )
        db.add(wallet)
        db.flush()

        if starting > 0:
            ledger.create_transaction(
                user_id,
                f"Initial balance for {wallet.name}",
                starting,
                INCOME,
                wallet_id=wallet.id,
                source="Wallet Creation",
            )

    db.refresh(wallet)
    ledger.notifier.record(user_id, events.WALLET_UPDATED, {"id": wallet.id, "action": "created"})
    logger.info("wallet_created", user_id=user_id, wallet_id=wallet.id, starting_balance=str(starting))
    return wallet_with_balance(db, wallet)


def update_wallet(
    ledger: Ledger,
    user_id: int,
    wallet_id: int,
    name: Optional[str] = None,
    type: Optional[str] = None,
    color: Optional[str] = None,
    icon: Optional[str] = None,
    balance=None,
) -> dict:
    updates = {k: v for k, v in (("name", name), ("type", type), ("color", color), ("icon", icon)) if v is not None}
    if not updates and balance is None:
        raise ValidationError("No updates provided")

    db = ledger.db
    wallet = get_owned_wallet(db, user_id, wallet_id)

    with ledger.atomic():
        for field, value in updates.items():
            setattr(wallet, field, value)
        db.flush()

        if balance is not None:
            target = parse_amount(balance)
            if target < 0:
                raise ValidationError("Balance must be a non-negative number")
            difference = target - calculate_wallet_balance(db, user_id, wallet.id)
            if difference > 0:
                ledger.create_transaction(
                    user_id,
                    f"Manual balance adjustment for {wallet.name}",
                    difference,
                    INCOME,
                    wallet_id=wallet.id,
                    source=BALANCE_ADJUSTMENT,
                )
            elif difference < 0:
                ledger.create_transaction(
                    user_id,
                    f"Manual balance adjustment for {wallet.name}",
                    -difference,
                    EXPENSE,
                    wallet_id=wallet.id,
                    category=BALANCE_ADJUSTMENT,
                )

    db.refresh(wallet)
    ledger.notifier.record(user_id, events.WALLET_UPDATED, {"id": wallet.id, "action": "updated"})
    logger.info("wallet_updated", user_id=user_id, wallet_id=wallet.id, fields=sorted(updates))
    return wallet_with_balance(db, wallet)


def deactivate_wallet(ledger: Ledger, user_id: int, wallet_id: int) -> bool:
    db = ledger.db
    wallet = (
        db.query(Wallet)
        .filter(Wallet.id == wallet_id, Wallet.user_id == user_id, Wallet.is_active.is_(True))
        .first()
    )
    if wallet is None:
        return False

    wallet.is_active = False
    db.commit()

    ledger.notifier.record(user_id, events.WALLET_UPDATED, {"id": wallet.id, "action": "deleted"})
    logger.info("wallet_deactivated", user_id=user_id, wallet_id=wallet.id)
    return True


def list_wallets(db: Session, user_id: int, include_inactive: bool = False) -> list:
    return wallets_with_balances(db, user_id, include_inactive=include_inactive)


def wallet_savings_summary(db: Session, user_id: int, wallet_id: int) -> dict:
    get_owned_wallet(db, user_id, wallet_id, active_only=False)

    rows = (
        db.query(Transaction)
        .filter(
            Transaction.user_id == user_id,
            Transaction.wallet_id == wallet_id,
            Transaction.type == SAVINGS,
        )
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )

    by_goal = {}
    total = ZERO
    for row in rows:
        amount = Decimal(row.amount)
        total += amount
        key = row.goal_name or "Unassigned"
        entry = by_goal.setdefault(key, {"goalName": key, "totalAmount": ZERO, "transactionCount": 0})
        entry["totalAmount"] += amount
        entry["transactionCount"] += 1

    savings_by_goal = sorted(by_goal.values(), key=lambda e: e["totalAmount"], reverse=True)
    for entry in savings_by_goal:
        entry["totalAmount"] = float(entry["totalAmount"])

    return {
        "walletId": wallet_id,
        "totalSavings": float(total),
        "savingsCount": len(rows),
        "savingsByGoal": savings_by_goal,
        "recentSavings": [row.to_dict() for row in rows[:10]],
    }
