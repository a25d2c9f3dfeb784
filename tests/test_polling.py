from app.services import notifier as events
from app.services.notifier import get_notifier

AUTH = {"X-User-Id": "1"}


def test_user_id_is_required(client):
    res = client.get("/polling-updates")
    assert res.status_code == 400
    assert res.json() == {"error": "User ID required"}

    res = client.get("/events")
    assert res.status_code == 400
    assert res.text == "User ID required"


def test_bad_since_is_rejected(client):
    res = client.get("/polling-updates", params={"userId": "1", "since": "yesterday"})
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_writes_show_up_for_pollers(client):
    wallet = client.post("/wallets", json={"name": "Main", "type": "bank", "balance": 100}, headers=AUTH).json()["data"]

    updates = client.get("/polling-updates", params={"userId": "1"}).json()
    assert [u["type"] for u in updates] == [events.TRANSACTION_CREATED, events.WALLET_UPDATED]
    assert updates[0]["data"]["wallet_id"] == wallet["id"]

    watermark = updates[-1]["timestamp"]
    assert client.get("/polling-updates", params={"userId": "1", "since": watermark}).json() == []

    client.post(
        "/transactions",
        json={"description": "Tea", "amount": 5, "type": "expense", "wallet_id": wallet["id"]},
        headers=AUTH,
    )
    newer = client.get("/polling-updates", params={"userId": "1", "since": watermark}).json()
    assert [u["type"] for u in newer] == [events.TRANSACTION_CREATED]

    assert client.get("/polling-updates", params={"userId": "2"}).json() == []


def test_duplicate_hints_lead_to_the_same_refetch(client):
    wallet = client.post("/wallets", json={"name": "Main", "type": "bank", "balance": 100}, headers=AUTH).json()["data"]
    notifier = get_notifier()

    notifier.record(1, events.WALLET_UPDATED, {"id": wallet["id"]})
    notifier.record(1, events.WALLET_UPDATED, {"id": wallet["id"]})

    # polling is non-destructive and refetching is idempotent
    first = client.get("/polling-updates", params={"userId": "1"}).json()
    second = client.get("/polling-updates", params={"userId": "1"}).json()
    assert first == second

    assert client.get("/wallets", headers=AUTH).json() == client.get("/wallets", headers=AUTH).json()
