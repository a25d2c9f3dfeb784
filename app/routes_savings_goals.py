# routes_savings_goals.py
"""
Savings goals and allocation of wallet savings towards them.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.deps import AuthUser, get_db, require_auth
from app.errors import NotFoundOrForbidden
from app.responses import NO_STORE, ok
from app.schemas import SavingsAllocate, SavingsDeallocate, SavingsGoalCreate
from app.services import savings_goals as goals
from app.services.notifier import UpdateNotifier, get_notifier

router = APIRouter(prefix="/savings-goals")


@router.get("")
def list_goals(
    active_only: bool = Query(False, alias="activeOnly"),
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    data = goals.list_goals(db, user.id, active_only=active_only)
    return ok(data, "Savings goals retrieved successfully", headers=NO_STORE)


@router.post("")
def create_goal(
    body: SavingsGoalCreate,
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
    notifier: UpdateNotifier = Depends(get_notifier),
):
    data = goals.create_goal(db, notifier, user.id, body.goal_name, body.target_amount, body.target_date)
    return ok(data, "Savings goal created successfully", status_code=201)


@router.post("/allocate")
def allocate(
    body: SavingsAllocate,
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
    notifier: UpdateNotifier = Depends(get_notifier),
):
    data = goals.allocate(db, notifier, user.id, body.goal_id, body.wallet_id, body.amount)
    return ok(data, f"Allocated {data['allocatedAmount']} to {data['goalName']}")


@router.post("/deallocate")
def deallocate(
    body: SavingsDeallocate,
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
    notifier: UpdateNotifier = Depends(get_notifier),
):
    data = goals.deallocate(db, notifier, user.id, body.goal_id, body.amount)
    return ok(data, f"Deallocated {data['deallocatedAmount']} from {data['goalName']}")


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: int,
    user: AuthUser = Depends(require_auth),
    db: Session = Depends(get_db),
    notifier: UpdateNotifier = Depends(get_notifier),
):
    if not goals.delete_goal(db, notifier, user.id, goal_id):
        raise NotFoundOrForbidden("Goal not found")
    return ok({"id": goal_id}, "Savings goal deleted successfully")
