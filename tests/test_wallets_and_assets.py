from datetime import date, timedelta

from app.services import notifier as events
from app.services.notifier import get_notifier

AUTH = {"X-User-Id": "1"}


def make_wallet(client, **body):
    payload = {"name": "Main", "type": "bank"}
    payload.update(body)
    return client.post("/wallets", json=payload, headers=AUTH).json()["data"]


def test_starting_balance_is_a_ledger_row(client):
    wallet = make_wallet(client, balance=2500)

    rows = client.get("/transactions", headers=AUTH).json()["data"]
    assert len(rows) == 1
    assert rows[0]["type"] == "income"
    assert rows[0]["source"] == "Wallet Creation"
    assert rows[0]["wallet_id"] == wallet["id"]


def test_negative_starting_balance_is_rejected(client):
    res = client.post("/wallets", json={"name": "Main", "type": "bank", "balance": -1}, headers=AUTH)
    assert res.status_code == 400


def test_balance_edit_writes_adjustment(client):
    wallet = make_wallet(client, balance=1000)

    res = client.put(f"/wallets/{wallet['id']}", json={"balance": 400, "name": "Daily"}, headers=AUTH)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["balance"] == 400.0
    assert data["name"] == "Daily"

    newest = client.get("/transactions", headers=AUTH).json()["data"][0]
    assert newest["type"] == "expense"
    assert newest["category"] == "Balance Adjustment"
    assert newest["amount"] == 600.0

    assert client.put(f"/wallets/{wallet['id']}", json={}, headers=AUTH).status_code == 400


def test_soft_delete_hides_wallet(client):
    wallet = make_wallet(client, balance=10)

    assert client.delete(f"/wallets/{wallet['id']}", headers=AUTH).status_code == 200
    assert client.get("/wallets", headers=AUTH).json()["data"] == []
    everything = client.get("/wallets?includeInactive=true", headers=AUTH).json()["data"]
    assert everything[0]["is_active"] is False
    assert everything[0]["balance"] == 10.0
    assert client.delete(f"/wallets/{wallet['id']}", headers=AUTH).status_code == 404


def test_wallet_savings_summary(client):
    wallet = make_wallet(client, balance=1000)
    for goal, amount in (("Trip", 100), ("Trip", 50), ("Car", 300)):
        client.post(
            "/transactions",
            json={"description": "save", "amount": amount, "type": "savings", "wallet_id": wallet["id"],
                  "goal_name": goal},
            headers=AUTH,
        )

    data = client.get(f"/wallets/{wallet['id']}/savings", headers=AUTH).json()["data"]
    assert data["totalSavings"] == 450.0
    assert data["savingsCount"] == 3
    assert data["savingsByGoal"][0] == {"goalName": "Car", "totalAmount": 300.0, "transactionCount": 1}


def test_daily_assets_are_computed_once_and_refreshed_after_backdated_write(client):
    wallet = make_wallet(client, balance=1000)
    today = date.today()
    start = (today - timedelta(days=1)).isoformat()
    params = {"start_date": start, "end_date": (today + timedelta(days=3)).isoformat()}

    first = client.get("/daily-assets", params=params, headers=AUTH).json()["data"]
    # future days are not materialised
    assert [row["date"] for row in first] == [start, today.isoformat()]
    assert first[-1] == {"date": today.isoformat(), "wallet_balance": 1000.0, "savings_total": 0.0,
                         "total_assets": 1000.0}

    client.post(
        "/transactions",
        json={"description": "Save", "amount": 200, "type": "savings", "wallet_id": wallet["id"],
              "goal_name": "Trip", "date": today.isoformat()},
        headers=AUTH,
    )

    second = client.get("/daily-assets", params=params, headers=AUTH).json()["data"]
    assert second[-1] == {"date": today.isoformat(), "wallet_balance": 800.0, "savings_total": 200.0,
                          "total_assets": 1000.0}


def test_daily_assets_requires_range(client):
    assert client.get("/daily-assets", headers=AUTH).status_code == 400
    res = client.get("/daily-assets", params={"start_date": "2024-02-01", "end_date": "2024-01-01"}, headers=AUTH)
    assert res.status_code == 400


def test_manual_snapshot_upsert(client):
    body = {"date": "2024-01-01", "wallet_balance": 10, "savings_total": 5, "total_assets": 15}
    assert client.post("/daily-assets", json=body, headers=AUTH).status_code == 200
    body["total_assets"] = 16
    res = client.post("/daily-assets", json=body, headers=AUTH)
    assert res.json()["data"]["total_assets"] == 16.0

    rows = client.get("/daily-assets", params={"start_date": "2024-01-01", "end_date": "2024-01-01"},
                      headers=AUTH).json()["data"]
    assert len(rows) == 1
    assert rows[0]["total_assets"] == 16.0


def test_wallet_changes_are_announced(client):
    wallet = make_wallet(client)
    client.put(f"/wallets/{wallet['id']}", json={"color": "#000000"}, headers=AUTH)

    types = [e.type for e in get_notifier().drain_since(1, 0)]
    assert types == [events.WALLET_UPDATED, events.WALLET_UPDATED]
