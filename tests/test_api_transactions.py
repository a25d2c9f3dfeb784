from datetime import datetime, timezone

from fastapi.testclient import TestClient

from app.services.ledger import Ledger

AUTH = {"X-User-Id": "1"}
OTHER = {"X-User-Id": "2"}


def create_wallet(client, headers=AUTH, **body):
    payload = {"name": "Main", "type": "bank", "balance": 0}
    payload.update(body)
    res = client.post("/wallets", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"]


def wallet_balance(client, wallet_id, headers=AUTH):
    wallets = client.get("/wallets", headers=headers).json()["data"]
    return next(w["balance"] for w in wallets if w["id"] == wallet_id)


def test_health(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_requests_without_identity_are_rejected(client):
    res = client.get("/transactions")
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Authentication required"}


def test_seeded_income_then_expense(client):
    wallet = create_wallet(client, balance=100000)
    assert wallet["balance"] == 100000.0

    res = client.post(
        "/transactions",
        json={"description": "Groceries", "amount": 30000, "type": "expense", "wallet_id": wallet["id"],
              "category": "Food"},
        headers=AUTH,
    )
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["data"]["amount"] == 30000.0
    assert res.headers["cache-control"].startswith("no-store")

    assert wallet_balance(client, wallet["id"]) == 70000.0


def test_expense_on_empty_wallet(client):
    wallet = create_wallet(client)

    res = client.post(
        "/transactions",
        json={"description": "Coffee", "amount": 50, "type": "expense", "wallet_id": wallet["id"]},
        headers=AUTH,
    )

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert "Insufficient balance" in body["error"]
    assert body["details"] == {"available": 0.0, "required": 50.0}
    assert client.get("/transactions", headers=AUTH).json()["data"] == []


def test_missing_fields_use_error_envelope(client):
    res = client.post("/transactions", json={"amount": 10}, headers=AUTH)
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert "description" in body["error"]


def test_transfers_cannot_be_posted_as_transactions(client):
    wallet = create_wallet(client, balance=100)
    res = client.post(
        "/transactions",
        json={"description": "x", "amount": 10, "type": "transfer", "wallet_id": wallet["id"]},
        headers=AUTH,
    )
    assert res.status_code == 400


def test_crud_round_trip(client):
    wallet = create_wallet(client, balance=1000)
    created = client.post(
        "/transactions",
        json={"description": "Taxi", "amount": 100, "type": "expense", "wallet_id": wallet["id"],
              "date": "2024-05-01T08:30:00"},
        headers=AUTH,
    ).json()["data"]

    fetched = client.get(f"/transactions/{created['id']}", headers=AUTH)
    assert fetched.status_code == 200
    assert fetched.json()["data"]["date"] == "2024-05-01T08:30:00"

    updated = client.put(f"/transactions/{created['id']}", json={"amount": 150}, headers=AUTH)
    assert updated.status_code == 200
    assert updated.json()["data"]["amount"] == 150.0
    assert wallet_balance(client, wallet["id"]) == 850.0

    assert client.delete(f"/transactions/{created['id']}", headers=AUTH).status_code == 200
    assert client.get(f"/transactions/{created['id']}", headers=AUTH).status_code == 404
    assert wallet_balance(client, wallet["id"]) == 1000.0


def test_other_users_rows_are_invisible(client):
    wallet = create_wallet(client, balance=1000)
    tx_id = client.get("/transactions", headers=AUTH).json()["data"][0]["id"]

    assert client.get(f"/transactions/{tx_id}", headers=OTHER).status_code == 404
    assert client.put(f"/transactions/{tx_id}", json={"amount": 1}, headers=OTHER).status_code == 404
    assert client.delete(f"/transactions/{tx_id}", headers=OTHER).status_code == 404
    res = client.post(
        "/transactions",
        json={"description": "x", "amount": 1, "type": "income", "wallet_id": wallet["id"]},
        headers=OTHER,
    )
    assert res.status_code == 404


def test_list_filters(client):
    wallet = create_wallet(client, balance=1000)
    for i in range(3):
        client.post(
            "/transactions",
            json={"description": f"e{i}", "amount": 1, "type": "expense", "wallet_id": wallet["id"]},
            headers=AUTH,
        )

    assert len(client.get("/transactions?limit=2", headers=AUTH).json()["data"]) == 2
    expenses = client.get("/transactions?type=expense", headers=AUTH).json()["data"]
    assert [tx["description"] for tx in expenses] == ["e2", "e1", "e0"]
    assert client.get("/transactions?type=bogus", headers=AUTH).status_code == 400


def test_trends_summary(client):
    wallet = create_wallet(client, balance=1000)
    client.post(
        "/transactions",
        json={"description": "Lunch", "amount": 200, "type": "expense", "wallet_id": wallet["id"]},
        headers=AUTH,
    )
    client.post(
        "/transactions",
        json={"description": "Stocks", "amount": 300, "type": "investment", "wallet_id": wallet["id"],
              "asset_name": "ACME"},
        headers=AUTH,
    )

    res = client.get("/transactions/trends?range=week", headers=AUTH)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["summary"] == {
        "totalIncome": 1000.0,
        "totalExpenses": 200.0,
        "totalSavings": 0.0,
        "totalInvestments": 300.0,
        "netIncome": 800.0,
        "transactionCount": 3,
    }
    assert len(data["trends"]) == 1
    assert data["trends"][0]["total"] == 1500.0

    assert client.get("/transactions/trends?range=decade", headers=AUTH).status_code == 400


def test_offset_date_on_update_is_stored_as_local_time(client):
    wallet = create_wallet(client, balance=1000)
    created = client.post(
        "/transactions",
        json={"description": "Taxi", "amount": 100, "type": "expense", "wallet_id": wallet["id"],
              "date": "2025-01-05T10:00:00"},
        headers=AUTH,
    ).json()["data"]

    res = client.put(f"/transactions/{created['id']}", json={"date": "2025-01-05T10:00:00Z"}, headers=AUTH)

    assert res.status_code == 200, res.text
    local = datetime(2025, 1, 5, 10, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert res.json()["data"]["date"] == local.isoformat()


def test_unexpected_errors_use_error_envelope(monkeypatch):
    from main import app

    def boom(self, *args, **kwargs):
        raise RuntimeError("lost the plot")

    monkeypatch.setattr(Ledger, "get_user_transactions", boom)
    monkeypatch.setattr("main.APP_DEBUG", False)
    client = TestClient(app, raise_server_exceptions=False)

    res = client.get("/transactions", headers=AUTH)

    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Internal server error"}
