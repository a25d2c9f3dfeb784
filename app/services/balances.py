# app/services/balances.py
"""
Derived balances.

Nothing here is stored: every figure is a fold over the transactions table,
so the ledger stays the only source of truth.

Sign convention (one table, used everywhere):

    type        stored   wallet balance   savings total
    income        +           +                0
    expense       +           -                0
    savings       +           -                +
    investment    +           -                0
    transfer     +/-      as stored            0
"""

from decimal import Decimal
from typing import Dict, List

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from models import Transaction, Wallet

INCOME = "income"
EXPENSE = "expense"
SAVINGS = "savings"
INVESTMENT = "investment"
TRANSFER = "transfer"

TRANSACTION_TYPES = (INCOME, EXPENSE, SAVINGS, INVESTMENT, TRANSFER)

# Types that take money out of the spendable wallet balance
OUTFLOW_TYPES = frozenset({EXPENSE, SAVINGS, INVESTMENT})

ZERO = Decimal("0")


def balance_contribution(type: str, amount) -> Decimal:
    """Signed effect of one row on its wallet's balance."""
    amount = Decimal(amount)
    if type in OUTFLOW_TYPES:
        return -amount
    if type in (INCOME, TRANSFER):
        return amount
    raise ValueError(f"unknown transaction type: {type!r}")


# SQL twin of balance_contribution, for aggregate queries
signed_amount = case(
    (Transaction.type.in_(tuple(OUTFLOW_TYPES)), -Transaction.amount),
    else_=Transaction.amount,
)


def as_money(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(value).quantize(Decimal("0.01"))


def calculate_wallet_balance(db: Session, user_id: int, wallet_id: int) -> Decimal:
    """
    Current balance of one wallet.

    Active or not: a deactivated wallet still reports its historical balance.
    """
    total = (
        db.query(func.coalesce(func.sum(signed_amount), 0))
        .filter(Transaction.user_id == user_id, Transaction.wallet_id == wallet_id)
        .scalar()
    )
    return as_money(total)


def calculate_wallet_balances(db: Session, user_id: int) -> Dict[int, Decimal]:
    """wallet_id -> balance for every wallet the user has rows on."""
    rows = (
        db.query(Transaction.wallet_id, func.coalesce(func.sum(signed_amount), 0))
        .filter(Transaction.user_id == user_id, Transaction.wallet_id.isnot(None))
        .group_by(Transaction.wallet_id)
        .all()
    )
    return {wallet_id: as_money(total) for wallet_id, total in rows}


def calculate_total_balance(db: Session, user_id: int) -> Decimal:
    """Sum of balances over the user's active wallets only."""
    total = (
        db.query(func.coalesce(func.sum(signed_amount), 0))
        .select_from(Transaction)
        .join(Wallet, Wallet.id == Transaction.wallet_id)
        .filter(
            Transaction.user_id == user_id,
            Wallet.user_id == user_id,
            Wallet.is_active.is_(True),
        )
        .scalar()
    )
    return as_money(total)


def wallet_savings_total(db: Session, user_id: int, wallet_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(
            Transaction.user_id == user_id,
            Transaction.wallet_id == wallet_id,
            Transaction.type == SAVINGS,
        )
        .scalar()
    )
    return as_money(total)


def wallets_with_balances(db: Session, user_id: int, include_inactive: bool = False) -> List[dict]:
    query = db.query(Wallet).filter(Wallet.user_id == user_id)
    if not include_inactive:
        query = query.filter(Wallet.is_active.is_(True))
    wallets = query.order_by(Wallet.created_at.desc(), Wallet.id.desc()).all()

    balances = calculate_wallet_balances(db, user_id)

    result = []
    for wallet in wallets:
        data = wallet.to_dict()
        data["balance"] = float(balances.get(wallet.id, ZERO))
        result.append(data)
    return result
