# routes_daily_assets.py
"""
Daily asset history for the net-worth chart.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.deps import AuthUser, get_db, require_auth
from app.errors import ValidationError
from app.responses import NO_STORE, ok
from app.schemas import DailyAssetUpsert
from app.services.daily_assets import get_daily_assets, upsert_snapshot

router = APIRouter(prefix="/daily-assets")


@router.get("")
def daily_assets(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    data = get_daily_assets(db, user.id, start_date, end_date)
    return ok(data, "Daily assets retrieved successfully", headers=NO_STORE)


@router.post("")
def save_daily_asset(
    body: DailyAssetUpsert,
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    data = upsert_snapshot(
        db,
        user.id,
        body.date,
        body.wallet_balance,
        body.savings_total,
        body.total_assets,
    )
    return ok(data, "Daily asset saved successfully")
