# app/services/savings_goals.py
"""
Savings goals and their allocation counter.

allocated_amount is bookkeeping layered over the ledger: allocating moves no
money and writes no transaction. It is bounded by the goal's target and, per
allocation, by the savings actually sitting in the chosen wallet.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.errors import InsufficientBalance, NotFoundOrForbidden, ValidationError
from app.log import get_logger
from app.services import notifier as events
from app.services.balances import wallet_savings_total
from app.services.ledger import parse_amount
from app.services.notifier import UpdateNotifier
from app.services.wallets import get_owned_wallet
from models import SavingsGoal

logger = get_logger(__name__)

# SQLite keeps Numeric as floating point; compare in SQL with half a cent of slack
_HALF_CENT = Decimal("0.005")


def _owned_goal(db: Session, user_id: int, goal_id: int) -> SavingsGoal:
    goal = (
        db.query(SavingsGoal)
        .filter(SavingsGoal.id == goal_id, SavingsGoal.user_id == user_id)
        .first()
    )
    if goal is None:
        raise NotFoundOrForbidden("Goal not found")
    return goal


def list_goals(db: Session, user_id: int, active_only: bool = False) -> List[dict]:
    goals = (
        db.query(SavingsGoal)
        .filter(SavingsGoal.user_id == user_id)
        .order_by(SavingsGoal.target_date.is_(None), SavingsGoal.target_date, SavingsGoal.id.desc())
        .all()
    )
    if active_only:
        goals = [g for g in goals if Decimal(g.allocated_amount) < Decimal(g.target_amount)]
    return [g.to_dict() for g in goals]


def create_goal(
    db: Session,
    notifier: UpdateNotifier,
    user_id: int,
    goal_name: str,
    target_amount,
    target_date: Optional[date] = None,
) -> dict:
    if not goal_name or not goal_name.strip():
        raise ValidationError("Missing required fields: goalName, targetAmount")
    target = parse_amount(target_amount)
    if target <= 0:
        raise ValidationError("Target amount must be a positive number")
    if target_date is not None and target_date < date.today():
        raise ValidationError("Target date must not be in the past")

    goal = SavingsGoal(
        user_id=user_id,
        goal_name=goal_name.strip(),
        target_amount=target,
        target_date=target_date,
        allocated_amount=Decimal("0"),
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)

    notifier.record(user_id, events.SAVINGS_GOAL_UPDATED, {"id": goal.id, "action": "created"})
    logger.info("savings_goal_created", user_id=user_id, goal_id=goal.id)
    return goal.to_dict()


def delete_goal(db: Session, notifier: UpdateNotifier, user_id: int, goal_id: int) -> bool:
    goal = (
        db.query(SavingsGoal)
        .filter(SavingsGoal.id == goal_id, SavingsGoal.user_id == user_id)
        .first()
    )
    if goal is None:
        return False
    db.delete(goal)
    db.commit()

    notifier.record(user_id, events.SAVINGS_GOAL_UPDATED, {"id": goal_id, "action": "deleted"})
    logger.info("savings_goal_deleted", user_id=user_id, goal_id=goal_id)
    return True


def allocate(db: Session, notifier: UpdateNotifier, user_id: int, goal_id: int, wallet_id: int, amount) -> dict:
    amount = parse_amount(amount)
    if amount <= 0:
        raise ValidationError("Allocation amount must be a positive number")

    goal = _owned_goal(db, user_id, goal_id)
    wallet = get_owned_wallet(db, user_id, wallet_id, active_only=False)

    allocated = Decimal(goal.allocated_amount)
    target = Decimal(goal.target_amount)
    remaining = target - allocated
    if amount > remaining:
        raise ValidationError(
            f"Allocation exceeds the remaining target for {goal.goal_name}. "
            f"Remaining: {remaining}, Requested: {amount}",
            details={"remaining": float(remaining), "requested": float(amount)},
        )

    available = wallet_savings_total(db, user_id, wallet.id)
    if amount > available:
        raise InsufficientBalance(
            f"Insufficient savings in {wallet.name}. Available: {available}, Required: {amount}",
            details={"available": float(available), "required": float(amount)},
        )

    # guarded in SQL too, so concurrent allocations cannot overshoot the target
    updated = (
        db.query(SavingsGoal)
        .filter(
            SavingsGoal.id == goal.id,
            SavingsGoal.allocated_amount + amount <= SavingsGoal.target_amount + _HALF_CENT,
        )
        .update(
            {SavingsGoal.allocated_amount: SavingsGoal.allocated_amount + amount},
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise ValidationError("Goal allocation changed concurrently, please retry")
    db.commit()
    db.refresh(goal)

    notifier.record(user_id, events.SAVINGS_GOAL_UPDATED, {"id": goal.id, "action": "allocated"})
    logger.info("savings_allocated", user_id=user_id, goal_id=goal.id, wallet_id=wallet.id, amount=str(amount))
    return {
        "goalId": goal.id,
        "goalName": goal.goal_name,
        "walletId": wallet.id,
        "allocatedAmount": float(amount),
        "previousAllocation": float(allocated),
        "newAllocation": float(goal.allocated_amount),
    }


def deallocate(db: Session, notifier: UpdateNotifier, user_id: int, goal_id: int, amount) -> dict:
    amount = parse_amount(amount)
    if amount <= 0:
        raise ValidationError("Invalid goalId or amount")

    goal = _owned_goal(db, user_id, goal_id)
    allocated = Decimal(goal.allocated_amount)
    if amount > allocated:
        raise ValidationError(
            f"Cannot deallocate more than allocated amount. "
            f"Current allocation: {allocated}, Requested: {amount}",
            details={"allocated": float(allocated), "requested": float(amount)},
        )

    updated = (
        db.query(SavingsGoal)
        .filter(SavingsGoal.id == goal.id, SavingsGoal.allocated_amount + _HALF_CENT >= amount)
        .update(
            {SavingsGoal.allocated_amount: SavingsGoal.allocated_amount - amount},
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise ValidationError("Goal allocation changed concurrently, please retry")
    db.commit()
    db.refresh(goal)

    notifier.record(user_id, events.SAVINGS_GOAL_UPDATED, {"id": goal.id, "action": "deallocated"})
    logger.info("savings_deallocated", user_id=user_id, goal_id=goal.id, amount=str(amount))
    return {
        "goalId": goal.id,
        "goalName": goal.goal_name,
        "deallocatedAmount": float(amount),
        "previousAllocation": float(allocated),
        "newAllocation": float(goal.allocated_amount),
    }
