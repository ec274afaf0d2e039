import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def group_id(client, fake_db):
    """Create a group through the API with Alice as admin and Bob as member."""
    response = client.post("/groups", json={
        "name": "Flat 4B",
        "currency": "usd",
        "owner": {"id": "alice", "name": "Alice"},
    })
    assert response.status_code == 201
    group = response.json()

    invite = client.post("/groups/join", json={
        "code": group["invite_code"],
        "user": {"id": "bob", "name": "Bob"},
    }).json()
    assert client.post(f"/invites/{invite['id']}/accept", json={"admin_id": "alice"}).status_code == 200
    return group["id"]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_create_and_read_group(client, group_id):
    group = client.get(f"/groups/{group_id}").json()

    assert group["currency"] == "USD"
    assert group["admin_id"] == "alice"
    assert group["members"] == [{"id": "alice", "name": "Alice"}, {"id": "bob", "name": "Bob"}]
    assert [g["id"] for g in client.get("/users/bob/groups").json()] == [group_id]


def test_expense_balances_and_payment_flow(client, group_id):
    response = client.post(f"/groups/{group_id}/expenses", json={
        "title": "Groceries",
        "amount": 100,
        "paid_by_id": "alice",
        "participant_ids": ["alice", "bob"],
        "items": [{"name": "Milk", "amount": 4.5}],
    })
    assert response.status_code == 201
    assert response.json()["id"] == "E001"

    balances = client.get(f"/groups/{group_id}/balances").json()
    assert [(b["member_id"], b["net"]) for b in balances["balances"]] == [("alice", 50.0), ("bob", -50.0)]
    assert balances["settlements"] == [{
        "from_id": "bob",
        "from_name": "Bob",
        "to_id": "alice",
        "to_name": "Alice",
        "amount": 50.0,
        "display": "USD 50.00",
    }]

    overview = client.get("/users/bob/payments").json()
    assert [item["amount"] for item in overview["to_pay"]] == [50.0]
    assert overview["net_by_currency"] == {"USD": -50.0}

    payment = client.post(f"/groups/{group_id}/payments", json={"from_id": "bob", "to_id": "alice", "amount": 50})
    assert payment.status_code == 201
    assert payment.json()["type"] == "payment"

    assert client.get(f"/groups/{group_id}/balances").json()["settlements"] == []

    history = client.get(f"/groups/{group_id}/expenses", params={"range": "all"}).json()
    assert [e["title"] for e in history] == ["Payment to Alice", "Groceries"]

    searched = client.get(f"/groups/{group_id}/expenses", params={"range": "all", "q": "groc"}).json()
    assert [e["id"] for e in searched] == ["E001"]

    report = client.get(f"/groups/{group_id}/analytics").json()
    assert report["analytics"]["total_spent"] == 100.0
    assert report["analytics"]["total_settled"] == 50.0

    assert client.delete(f"/groups/{group_id}/expenses/E001").status_code == 204
    assert client.delete(f"/groups/{group_id}/expenses/E001").status_code == 400


def test_invalid_expense_payloads(client, group_id):
    base = {"title": "Rent", "amount": 900, "paid_by_id": "alice", "participant_ids": ["alice", "bob"]}

    assert client.post(f"/groups/{group_id}/expenses", json={**base, "amount": -5}).status_code == 422
    assert client.post(f"/groups/{group_id}/expenses", json={**base, "participant_ids": []}).status_code == 422
    assert client.post(f"/groups/{group_id}/expenses", json={**base, "type": "refund"}).status_code == 422

    response = client.post(f"/groups/{group_id}/expenses", json={**base, "paid_by_id": "mallory"})
    assert response.status_code == 400
    assert "mallory" in response.json()["detail"]


def test_invalid_range_is_rejected(client, group_id):
    assert client.get(f"/groups/{group_id}/expenses", params={"range": "1y"}).status_code == 422


def test_missing_group(client, fake_db):
    assert client.get("/groups/missing").status_code == 404
    assert client.get("/groups/missing/balances").status_code == 404


def test_admin_only_actions(client, group_id):
    assert client.delete(f"/groups/{group_id}/members/alice", params={"admin_id": "bob"}).status_code == 403
    assert client.post(f"/groups/{group_id}/leave", json={"user_id": "alice"}).status_code == 403
    assert client.delete(f"/groups/{group_id}", params={"admin_id": "bob"}).status_code == 403

    assert client.post(f"/groups/{group_id}/leave", json={"user_id": "bob"}).status_code == 204
    assert client.delete(f"/groups/{group_id}", params={"admin_id": "alice"}).status_code == 204
    assert client.get(f"/groups/{group_id}").status_code == 404


def test_join_requests(client, group_id):
    code = client.get(f"/groups/{group_id}").json()["invite_code"]

    created = client.post("/groups/join", json={"code": code.lower(), "user": {"id": "carol", "name": "Carol"}})
    assert created.status_code == 201
    assert [i["requester_id"] for i in client.get("/users/alice/invites").json()] == ["carol"]

    duplicate = client.post("/groups/join", json={"code": code, "user": {"id": "carol", "name": "Carol"}})
    assert duplicate.status_code == 400

    rejected = client.post(f"/invites/{created.json()['id']}/reject", json={"admin_id": "alice"})
    assert rejected.json()["status"] == "rejected"
    assert client.get("/users/alice/invites").json() == []


def test_parse_amount(client):
    response = client.post("/amounts/parse", json={"text": "1.234,56", "currency": "EUR"})

    assert response.json() == {"amount": 1234.56, "display": "EUR 1234.56"}
    assert client.post("/amounts/parse", json={"text": "abc"}).json() == {"amount": 0.0, "display": "0.00"}


def test_firestore_unavailable(client, no_db):
    assert client.get("/groups/g1").status_code == 503
    assert client.get("/users/alice/groups").status_code == 503
