# models.py
# Role: SQLAlchemy ORM models for the wallet ledger domain.
#       Transactions are the single source of truth; wallets and savings goals
#       carry no stored balances, and daily asset snapshots are a lazily
#       materialised cache over the ledger.

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)

from db import Base


def _money(value) -> float | None:
    if value is None:
        return None
    return float(Decimal(value))


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


class Transaction(Base):
    """
    ORM model representing a single ledger entry.

    Amounts are stored positive for income, expense, savings and investment
    rows. Transfer legs carry their sign: the outgoing leg is negative, the
    incoming leg positive, and both share one transfer_group_id.
    """

    __tablename__ = "transactions"

    # Primary key (monotonically assigned; also the creation order tie-breaker)
    id = Column(Integer, primary_key=True, index=True)

    # Owning user; every query is scoped by this
    user_id = Column(Integer, nullable=False, index=True)

    # Owning wallet (NULL only for legacy/unassigned rows)
    wallet_id = Column(Integer, nullable=True, index=True)

    description = Column(Text, nullable=False)

    amount = Column(Numeric(14, 2), nullable=False)

    # income | expense | savings | investment | transfer
    type = Column(String(20), nullable=False)

    # Type-keyed optional attributes (mutually exclusive)
    category = Column(String(50), nullable=True)       # expense
    source = Column(String(50), nullable=True)         # income
    goal_name = Column(String(100), nullable=True)     # savings
    asset_name = Column(String(100), nullable=True)    # investment
    transfer_type = Column(String(50), nullable=True)  # transfer

    # Links the two legs of one wallet-to-wallet transfer
    transfer_group_id = Column(String(36), nullable=True, index=True)

    # User-facing transaction date (may differ from created_at)
    date = Column(DateTime, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_transactions_user_wallet", "user_id", "wallet_id"),
        Index("idx_transactions_user_date", "user_id", "date"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "wallet_id": self.wallet_id,
            "description": self.description,
            "amount": _money(self.amount),
            "type": self.type,
            "category": self.category,
            "source": self.source,
            "goal_name": self.goal_name,
            "asset_name": self.asset_name,
            "transfer_type": self.transfer_type,
            "transfer_group_id": self.transfer_group_id,
            "date": _iso(self.date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Wallet(Base):
    """
    A user's wallet (bank account, e-wallet, cash...).

    There is deliberately no balance column: balances are folded from the
    transactions table on demand. Deleting a wallet only clears is_active.
    """

    __tablename__ = "user_wallets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False, default="bank")
    color = Column(String(7), nullable=False, default="#10B981")
    icon = Column(String(50), nullable=False, default="wallet")

    # Soft-delete flag
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "type": self.type,
            "color": self.color,
            "icon": self.icon,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class SavingsGoal(Base):
    """
    A savings target. allocated_amount is bookkeeping on top of the ledger
    (moved by allocate/deallocate), not backed by its own transactions.
    """

    __tablename__ = "savings_goals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    goal_name = Column(String(150), nullable=False)
    target_amount = Column(Numeric(14, 2), nullable=False)
    target_date = Column(Date, nullable=True)

    # 0 <= allocated_amount <= target_amount
    allocated_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self) -> dict:
        target = _money(self.target_amount) or 0.0
        allocated = _money(self.allocated_amount) or 0.0
        return {
            "id": self.id,
            "user_id": self.user_id,
            "goal_name": self.goal_name,
            "target_amount": target,
            "target_date": _iso(self.target_date),
            "allocated_amount": allocated,
            "progress_percentage": round(allocated / target * 100, 2) if target else 0.0,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class DailyAssetSnapshot(Base):
    """
    Memoised per-day asset totals for one user.

    Rows are computed lazily on first request and dropped by the ledger when a
    write lands on or before their date.
    """

    __tablename__ = "daily_assets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False)
    wallet_balance = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    savings_total = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_assets = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_assets_user_date"),
    )

    def to_dict(self) -> dict:
        return {
            "date": _iso(self.date),
            "wallet_balance": _money(self.wallet_balance),
            "savings_total": _money(self.savings_total),
            "total_assets": _money(self.total_assets),
        }
