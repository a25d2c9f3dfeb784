# app/services/ledger.py
"""
Transaction ledger: the only code path that writes to `transactions`.

Every successful write, once committed:
- records an update event for the owning user in the notifier
- has already dropped (in the same DB transaction) the user's daily asset
  snapshots dated on or after the earliest affected transaction date

Callers never notify on their own; adding a new write path here keeps
real-time refresh and snapshot freshness working.

Usage:
    ledger = Ledger(db, notifier)
    ledger.create_transaction(user_id, "Coffee", Decimal("30000"), "expense", wallet_id=1, category="Food")

    with ledger.atomic():        # several writes, one commit, all-or-nothing
        ledger.create_transaction(...)
        ledger.create_transaction(...)
"""

from contextlib import contextmanager
from datetime import date as date_type, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.errors import InsufficientBalance, NotFoundOrForbidden, ValidationError
from app.log import get_logger
from app.services import notifier as events
from app.services.balances import (
    EXPENSE,
    INCOME,
    INVESTMENT,
    OUTFLOW_TYPES,
    SAVINGS,
    TRANSACTION_TYPES,
    TRANSFER,
    balance_contribution,
    calculate_wallet_balance,
)
from app.services.notifier import UpdateNotifier
from models import DailyAssetSnapshot, Transaction, Wallet

logger = get_logger(__name__)

TRANSFER_TYPES = ("wallet_to_wallet", "wallet_to_savings", "savings_to_wallet")

# attribute -> the only transaction type allowed to carry it
TYPE_KEYED_ATTRIBUTES = {
    "category": EXPENSE,
    "source": INCOME,
    "goal_name": SAVINGS,
    "asset_name": INVESTMENT,
    "transfer_type": TRANSFER,
}

UPDATABLE_FIELDS = (
    "description",
    "amount",
    "type",
    "wallet_id",
    "category",
    "source",
    "goal_name",
    "asset_name",
    "date",
)


def parse_amount(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("Amount must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Amount must be a number", details={"amount": value})
    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number")
    return amount.quantize(Decimal("0.01"))


def _to_datetime(value) -> datetime:
    """
    Naive local time, the form the date column stores and reads back.

    Offset-aware input is converted to local time before the offset is dropped.
    """
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError("Invalid date, expected ISO format", details={"date": value})
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date_type):
        return datetime(value.year, value.month, value.day)
    raise ValidationError("Invalid date", details={"date": value})


class Ledger:
    def __init__(self, db: Session, notifier: UpdateNotifier):
        self.db = db
        self.notifier = notifier
        self._depth = 0
        self._pending: List[Tuple[int, str, dict]] = []

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator["Ledger"]:
        """
        Run several writes as one database transaction.

        Commit and notifications happen when the outermost block exits
        cleanly; any exception rolls everything back and drops the queued
        events.
        """
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.db.rollback()
                self._pending.clear()
            raise
        self._depth -= 1
        if self._depth == 0:
            self._commit()

    def _finish_write(self, user_id: int, event_type: str, payload: dict) -> None:
        self._pending.append((user_id, event_type, payload))
        if self._depth == 0:
            self._commit()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._pending.clear()
            raise

        pending, self._pending = self._pending, []
        for user_id, event_type, payload in pending:
            self.notifier.record(user_id, event_type, payload)

    def _invalidate_snapshots(self, user_id: int, since: datetime) -> None:
        (
            self.db.query(DailyAssetSnapshot)
            .filter(
                DailyAssetSnapshot.user_id == user_id,
                DailyAssetSnapshot.date >= since.date(),
            )
            .delete(synchronize_session=False)
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _active_wallet(self, user_id: int, wallet_id) -> Wallet:
        if wallet_id is None:
            raise ValidationError("Missing required field: wallet_id")
        wallet = (
            self.db.query(Wallet)
            .filter(Wallet.id == wallet_id, Wallet.user_id == user_id, Wallet.is_active.is_(True))
            .first()
        )
        if wallet is None:
            raise NotFoundOrForbidden("Wallet not found")
        return wallet

    @staticmethod
    def _check_fields(type: str, amount: Decimal, description: str, attrs: Dict[str, Any]) -> None:
        if not description or not str(description).strip():
            raise ValidationError("Missing required field: description")
        if type not in TRANSACTION_TYPES:
            raise ValidationError(
                f"Invalid transaction type: {type!r}",
                details={"allowed": list(TRANSACTION_TYPES)},
            )

        if type == TRANSFER:
            if amount == 0:
                raise ValidationError("Transfer amount must not be zero")
            if attrs.get("transfer_type") not in TRANSFER_TYPES:
                raise ValidationError(
                    "Transfer legs need a transfer_type",
                    details={"allowed": list(TRANSFER_TYPES)},
                )
        elif amount <= 0:
            raise ValidationError("Amount must be a positive number")

        misplaced = [
            name for name, owner in TYPE_KEYED_ATTRIBUTES.items()
            if attrs.get(name) and owner != type
        ]
        if misplaced:
            raise ValidationError(
                f"Fields not allowed for {type} transactions: {', '.join(misplaced)}",
                details={"fields": misplaced},
            )

    def _check_balance(self, user_id: int, wallet: Wallet, type: str, amount: Decimal,
                       exclude: Optional[Transaction] = None) -> None:
        if type not in OUTFLOW_TYPES:
            return
        balance = calculate_wallet_balance(self.db, user_id, wallet.id)
        if exclude is not None and exclude.wallet_id == wallet.id:
            # the row being edited is still in the table with its old values
            balance -= balance_contribution(exclude.type, exclude.amount)
        if balance < amount:
            raise InsufficientBalance(
                f"Insufficient balance in {wallet.name}. "
                f"Current balance: {balance}, Required: {amount}",
                details={"available": float(balance), "required": float(amount)},
            )

    def _check_inflow_change(self, user_id: int, tx: Transaction, wallet: Wallet, type: str,
                             amount: Decimal) -> None:
        """Moving or shrinking an income row must not overdraw the wallet it funded."""
        balance = calculate_wallet_balance(self.db, user_id, tx.wallet_id)
        projected = balance - balance_contribution(tx.type, tx.amount)
        if wallet.id == tx.wallet_id:
            projected += balance_contribution(type, amount)
        if projected < 0 and projected < balance:
            source = self.db.query(Wallet).filter(Wallet.id == tx.wallet_id).first()
            name = source.name if source is not None else f"wallet {tx.wallet_id}"
            raise InsufficientBalance(
                f"Insufficient balance in {name}. "
                f"Current balance: {balance}, balance after change: {projected}",
                details={"available": float(balance), "after_change": float(projected)},
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_transaction(
        self,
        user_id: int,
        description: str,
        amount,
        type: str,
        wallet_id: Optional[int] = None,
        category: Optional[str] = None,
        source: Optional[str] = None,
        goal_name: Optional[str] = None,
        asset_name: Optional[str] = None,
        transfer_type: Optional[str] = None,
        date=None,
        transfer_group_id: Optional[str] = None,
        check_balance: bool = True,
    ) -> Transaction:
        amount = parse_amount(amount)
        attrs = {
            "category": category,
            "source": source,
            "goal_name": goal_name,
            "asset_name": asset_name,
            "transfer_type": transfer_type,
        }
        self._check_fields(type, amount, description, attrs)

        wallet = self._active_wallet(user_id, wallet_id)
        if check_balance:
            self._check_balance(user_id, wallet, type, amount)

        tx = Transaction(
            user_id=user_id,
            wallet_id=wallet.id,
            description=str(description).strip(),
            amount=amount,
            type=type,
            transfer_group_id=transfer_group_id,
            date=_to_datetime(date) if date is not None else datetime.now(),
            **{k: (v or None) for k, v in attrs.items()},
        )
        self.db.add(tx)
        self.db.flush()
        self._invalidate_snapshots(user_id, tx.date)
        self.db.refresh(tx)

        logger.info(
            "transaction_created",
            user_id=user_id,
            transaction_id=tx.id,
            wallet_id=tx.wallet_id,
            type=tx.type,
            amount=str(tx.amount),
        )
        self._finish_write(user_id, events.TRANSACTION_CREATED, tx.to_dict())
        return tx

    def update_transaction(self, user_id: int, transaction_id: int, **fields) -> Transaction:
        unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

        tx = self.get_transaction(user_id, transaction_id)
        if tx is None:
            raise NotFoundOrForbidden("Transaction not found")
        if tx.type == TRANSFER:
            raise ValidationError("Transfer legs cannot be edited; delete the transfer and create a new one")

        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes:
            raise ValidationError("No updates provided")

        new_type = changes.get("type", tx.type)
        if new_type == TRANSFER:
            raise ValidationError("Use /wallet-transfers to create transfers")
        new_amount = parse_amount(changes["amount"]) if "amount" in changes else Decimal(tx.amount)
        new_description = changes.get("description", tx.description)

        # a type change drops attributes that belonged to the old type
        attrs = {}
        for name, owner in TYPE_KEYED_ATTRIBUTES.items():
            if name in changes:
                attrs[name] = changes[name]
            elif owner == new_type:
                attrs[name] = getattr(tx, name)
            else:
                attrs[name] = None
        self._check_fields(new_type, new_amount, new_description, attrs)

        wallet = self._active_wallet(user_id, changes.get("wallet_id", tx.wallet_id))
        if tx.type == INCOME and tx.wallet_id is not None and not (
            wallet.id == tx.wallet_id and new_type in OUTFLOW_TYPES
        ):
            self._check_inflow_change(user_id, tx, wallet, new_type, new_amount)
        self._check_balance(user_id, wallet, new_type, new_amount, exclude=tx)

        old_date = tx.date
        new_date = _to_datetime(changes["date"]) if "date" in changes else tx.date

        tx.description = str(new_description).strip()
        tx.amount = new_amount
        tx.type = new_type
        tx.wallet_id = wallet.id
        tx.date = new_date
        for name, value in attrs.items():
            setattr(tx, name, value or None)
        tx.updated_at = datetime.now()

        self.db.flush()
        self._invalidate_snapshots(user_id, min(old_date, new_date))
        self.db.refresh(tx)

        logger.info("transaction_updated", user_id=user_id, transaction_id=tx.id)
        self._finish_write(user_id, events.TRANSACTION_UPDATED, tx.to_dict())
        return tx

    def delete_transaction(self, user_id: int, transaction_id: int) -> bool:
        tx = self.get_transaction(user_id, transaction_id)
        if tx is None:
            return False

        # both legs of a transfer go together
        if tx.transfer_group_id:
            rows = (
                self.db.query(Transaction)
                .filter(
                    Transaction.user_id == user_id,
                    Transaction.transfer_group_id == tx.transfer_group_id,
                )
                .all()
            )
        else:
            rows = [tx]

        earliest = min(row.date for row in rows)
        deleted_ids = [row.id for row in rows]
        for row in rows:
            self.db.delete(row)
        self.db.flush()
        self._invalidate_snapshots(user_id, earliest)

        logger.info("transaction_deleted", user_id=user_id, transaction_ids=deleted_ids)
        self._finish_write(user_id, events.TRANSACTION_DELETED, {"ids": deleted_ids})
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_transaction(self, user_id: int, transaction_id: int) -> Optional[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .first()
        )

    def get_user_transactions(
        self,
        user_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        type: Optional[str] = None,
    ) -> List[Transaction]:
        """Newest first: by transaction date, then by creation order."""
        query = self.db.query(Transaction).filter(Transaction.user_id == user_id)
        if type:
            query = query.filter(Transaction.type == type)
        query = query.order_by(Transaction.date.desc(), Transaction.id.desc())
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()
