# app/services/daily_assets.py
"""
Per-day asset totals, materialised on first read.

A snapshot for day D folds every ledger row dated on or before D:
- wallet_balance: signed rows on the user's active wallets
- savings_total: savings rows on any wallet
- total_assets: the sum of the two

Rows go stale when the ledger writes something dated on or before them; the
ledger deletes them in that case and the next read recomputes.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.log import get_logger
from app.services.balances import SAVINGS, as_money, signed_amount
from app.services.ledger import parse_amount
from models import DailyAssetSnapshot, Transaction, Wallet

logger = get_logger(__name__)

# Longest range served in one request
MAX_RANGE_DAYS = 366


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"daily asset upsert is not supported on {dialect}")


def _upsert(db: Session, user_id: int, day: date, wallet_balance, savings_total, total_assets) -> None:
    insert = _insert_for(db)
    stmt = insert(DailyAssetSnapshot).values(
        user_id=user_id,
        date=day,
        wallet_balance=wallet_balance,
        savings_total=savings_total,
        total_assets=total_assets,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "date"],
        set_={
            "wallet_balance": stmt.excluded.wallet_balance,
            "savings_total": stmt.excluded.savings_total,
            "total_assets": stmt.excluded.total_assets,
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)


def compute_snapshot(db: Session, user_id: int, day: date) -> Dict[str, Decimal]:
    cutoff = datetime.combine(day + timedelta(days=1), time.min)

    wallet_balance = (
        db.query(func.coalesce(func.sum(signed_amount), 0))
        .select_from(Transaction)
        .join(Wallet, Wallet.id == Transaction.wallet_id)
        .filter(
            Transaction.user_id == user_id,
            Transaction.date < cutoff,
            Wallet.user_id == user_id,
            Wallet.is_active.is_(True),
        )
        .scalar()
    )
    savings_total = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(
            Transaction.user_id == user_id,
            Transaction.type == SAVINGS,
            Transaction.date < cutoff,
        )
        .scalar()
    )

    wallet_balance = as_money(wallet_balance)
    savings_total = as_money(savings_total)
    return {
        "wallet_balance": wallet_balance,
        "savings_total": savings_total,
        "total_assets": wallet_balance + savings_total,
    }


def _stored(db: Session, user_id: int, start: date, end: date) -> List[DailyAssetSnapshot]:
    return (
        db.query(DailyAssetSnapshot)
        .filter(
            DailyAssetSnapshot.user_id == user_id,
            DailyAssetSnapshot.date >= start,
            DailyAssetSnapshot.date <= end,
        )
        .order_by(DailyAssetSnapshot.date.asc())
        .all()
    )


def get_daily_assets(db: Session, user_id: int, start: date, end: date) -> List[dict]:
    """
    Snapshots for start..end inclusive, computing any that are missing.

    Days after today are never materialised, so a range reaching into the
    future returns only the days that have happened.
    """
    if start > end:
        raise ValidationError("start_date must be on or before end_date")
    if (end - start).days >= MAX_RANGE_DAYS:
        raise ValidationError(f"Date range must not exceed {MAX_RANGE_DAYS} days")

    existing = {row.date for row in _stored(db, user_id, start, end)}

    last = min(end, date.today())
    missing = []
    day = start
    while day <= last:
        if day not in existing:
            missing.append(day)
        day += timedelta(days=1)

    if missing:
        for day in missing:
            _upsert(db, user_id, day, **compute_snapshot(db, user_id, day))
        db.commit()
        logger.info(
            "daily_assets_computed",
            user_id=user_id,
            days=len(missing),
            first=missing[0].isoformat(),
            last=missing[-1].isoformat(),
        )

    return [row.to_dict() for row in _stored(db, user_id, start, end)]


def upsert_snapshot(db: Session, user_id: int, day: date, wallet_balance, savings_total, total_assets) -> dict:
    values = {
        "wallet_balance": parse_amount(wallet_balance),
        "savings_total": parse_amount(savings_total),
        "total_assets": parse_amount(total_assets),
    }
    _upsert(db, user_id, day, **values)
    db.commit()

    row = (
        db.query(DailyAssetSnapshot)
        .filter(DailyAssetSnapshot.user_id == user_id, DailyAssetSnapshot.date == day)
        .one()
    )
    logger.info("daily_asset_upserted", user_id=user_id, date=day.isoformat())
    return row.to_dict()
