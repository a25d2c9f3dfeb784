from datetime import date, timedelta

import pytest

from app.errors import InsufficientBalance, NotFoundOrForbidden, ValidationError
from app.services import notifier as events
from app.services.savings_goals import allocate, create_goal, deallocate, delete_goal, list_goals

AUTH = {"X-User-Id": "1"}


@pytest.fixture
def funded(ledger, make_wallet):
    wallet = make_wallet(balance=100000)
    ledger.create_transaction(1, "Put aside", 40000, "savings", wallet_id=wallet["id"], goal_name="Trip")
    return wallet


def test_create_goal_validates(db, notifier):
    with pytest.raises(ValidationError):
        create_goal(db, notifier, 1, "", 100)
    with pytest.raises(ValidationError):
        create_goal(db, notifier, 1, "Trip", 0)
    with pytest.raises(ValidationError):
        create_goal(db, notifier, 1, "Trip", 100, target_date=date.today() - timedelta(days=1))

    goal = create_goal(db, notifier, 1, "  Trip ", 50000, target_date=date.today() + timedelta(days=30))
    assert goal["goal_name"] == "Trip"
    assert goal["allocated_amount"] == 0.0
    assert notifier.drain_since(1, 0)[-1].type == events.SAVINGS_GOAL_UPDATED


def test_allocation_bounds(db, notifier, funded):
    goal = create_goal(db, notifier, 1, "Trip", 50000)

    # more than the goal still needs
    with pytest.raises(ValidationError):
        allocate(db, notifier, 1, goal["id"], funded["id"], 60000)

    # more than the wallet has saved
    with pytest.raises(InsufficientBalance):
        allocate(db, notifier, 1, goal["id"], funded["id"], 45000)

    result = allocate(db, notifier, 1, goal["id"], funded["id"], 30000)
    assert result["previousAllocation"] == 0.0
    assert result["newAllocation"] == 30000.0

    with pytest.raises(ValidationError):
        allocate(db, notifier, 1, goal["id"], funded["id"], 20000.01)


def test_deallocation_bounds(db, notifier, funded):
    goal = create_goal(db, notifier, 1, "Trip", 50000)
    allocate(db, notifier, 1, goal["id"], funded["id"], 30000)

    with pytest.raises(ValidationError):
        deallocate(db, notifier, 1, goal["id"], 40000)
    with pytest.raises(ValidationError):
        deallocate(db, notifier, 1, goal["id"], 0)

    result = deallocate(db, notifier, 1, goal["id"], 10000)
    assert result["newAllocation"] == 20000.0
    assert list_goals(db, 1)[0]["allocated_amount"] == 20000.0


def test_goals_are_owner_scoped(db, notifier, funded):
    goal = create_goal(db, notifier, 1, "Trip", 50000)

    with pytest.raises(NotFoundOrForbidden):
        allocate(db, notifier, 2, goal["id"], funded["id"], 10)
    assert list_goals(db, 2) == []
    assert delete_goal(db, notifier, 2, goal["id"]) is False
    assert delete_goal(db, notifier, 1, goal["id"]) is True


def test_goal_endpoints(client):
    wallet = client.post("/wallets", json={"name": "Main", "type": "bank", "balance": 1000},
                         headers=AUTH).json()["data"]
    client.post(
        "/transactions",
        json={"description": "Save", "amount": 500, "type": "savings", "wallet_id": wallet["id"],
              "goal_name": "Bike"},
        headers=AUTH,
    )

    created = client.post("/savings-goals", json={"goalName": "Bike", "targetAmount": 800}, headers=AUTH)
    assert created.status_code == 201
    goal_id = created.json()["data"]["id"]

    res = client.post("/savings-goals/allocate", json={"goalId": goal_id, "walletId": wallet["id"], "amount": 600},
                      headers=AUTH)
    assert res.status_code == 400
    assert res.json()["success"] is False

    res = client.post("/savings-goals/allocate", json={"goalId": goal_id, "walletId": wallet["id"], "amount": 500},
                      headers=AUTH)
    assert res.status_code == 200
    assert res.json()["data"]["newAllocation"] == 500.0

    res = client.post("/savings-goals/deallocate", json={"goalId": goal_id, "amount": 200}, headers=AUTH)
    assert res.json()["data"]["newAllocation"] == 300.0

    goals = client.get("/savings-goals", headers=AUTH).json()["data"]
    assert goals[0]["progress_percentage"] == 37.5

    assert client.delete(f"/savings-goals/{goal_id}", headers=AUTH).status_code == 200
    assert client.delete(f"/savings-goals/{goal_id}", headers=AUTH).status_code == 404
