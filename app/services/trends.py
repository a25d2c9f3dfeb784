# app/services/trends.py
"""
Per-day totals by transaction type over a recent window, for charts.
"""

from datetime import datetime, timedelta
from typing import Optional

import pandas as pd
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.services.balances import EXPENSE, INCOME, INVESTMENT, SAVINGS, TRANSACTION_TYPES, TRANSFER
from models import Transaction

RANGES = ("week", "month", "year")

# type -> column name in the daily rows
COLUMNS = {
    INCOME: "income",
    EXPENSE: "expenses",
    SAVINGS: "savings",
    INVESTMENT: "investments",
    TRANSFER: "transfers",
}


def range_start(range_name: str, now: datetime) -> datetime:
    if range_name == "week":
        return now - timedelta(days=7)
    if range_name == "month":
        return datetime(now.year, now.month, 1)
    if range_name == "year":
        return datetime(now.year, 1, 1)
    raise ValidationError(f"Invalid range: {range_name!r}", details={"allowed": list(RANGES)})


def transaction_trends(db: Session, user_id: int, range_name: str = "month",
                       type: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    if type is not None and type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {type!r}", details={"allowed": list(TRANSACTION_TYPES)})

    now = now or datetime.now()
    start = range_start(range_name, now)

    query = db.query(Transaction.date, Transaction.type, Transaction.amount).filter(
        Transaction.user_id == user_id,
        Transaction.date >= start,
        Transaction.date <= now,
    )
    if type:
        query = query.filter(Transaction.type == type)
    rows = query.all()

    df = pd.DataFrame([tuple(r) for r in rows], columns=["date", "type", "amount"])
    daily = []
    totals = {column: 0.0 for column in COLUMNS.values()}

    if not df.empty:
        df["amount"] = pd.to_numeric(df["amount"].astype(str))
        df["day"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m-%d")
        df["column"] = df["type"].map(COLUMNS)

        pivot = (
            df.pivot_table(index="day", columns="column", values="amount", aggfunc="sum", fill_value=0.0)
            .reindex(columns=list(COLUMNS.values()), fill_value=0.0)
            .sort_index()
        )
        pivot["total"] = pivot.sum(axis=1)

        for day, values in pivot.iterrows():
            entry = {"date": day}
            entry.update({column: round(float(values[column]), 2) for column in pivot.columns})
            daily.append(entry)

        for column, value in df.groupby("column")["amount"].sum().items():
            totals[column] = round(float(value), 2)

    summary = {
        "totalIncome": totals["income"],
        "totalExpenses": totals["expenses"],
        "totalSavings": totals["savings"],
        "totalInvestments": totals["investments"],
        "netIncome": round(totals["income"] - totals["expenses"], 2),
        "transactionCount": int(len(df)),
    }

    return {
        "trends": daily,
        "summary": summary,
        "range": range_name,
        "startDate": start.isoformat(),
        "endDate": now.isoformat(),
    }
