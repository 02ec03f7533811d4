"""HTTP surface: routing, headers into RequestContext, error codes."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from cardwise.db import get_session
from cardwise.models import RewardRule
from main import app

ADMIN = {"X-User-Role": "ADMIN"}


@pytest.fixture
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def as_alice(world):
    return {"X-User-Id": str(world.user.id)}


def purchase(category_id, amount="1000", transaction_type="ONLINE", **extra):
    return {
        "amount": amount,
        "category_id": category_id,
        "transaction_type": transaction_type,
        **extra,
    }


def test_recommendation(client, world, new_card, as_alice):
    new_card("Steady", rules=[{"category_id": world.dining.id, "reward_value": 1}])
    new_card("Best", rules=[{"category_id": world.dining.id, "reward_value": 5}])

    resp = client.post(
        f"/api/users/{world.user.id}/recommendations",
        json=purchase(world.dining.id),
        headers=as_alice,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["recommended"]["card_name"] == "Best"
    assert body["recommended"]["reward_display"] == "$50.00"
    assert [r["card_name"] for r in body["results"]] == ["Best", "Steady"]


def test_recommendation_empty_wallet(client, world, as_alice):
    resp = client.post(
        f"/api/users/{world.user.id}/recommendations",
        json=purchase(world.dining.id),
        headers=as_alice,
    )

    assert resp.status_code == 200
    assert resp.json() == {"recommended": None, "results": []}


@pytest.mark.parametrize(
    "overrides, status, code",
    [
        ({"category_id": None}, 422, "VALIDATION_ERROR"),
        ({"category_id": 4040}, 404, "NOT_FOUND"),
        ({"amount": "0"}, 422, "VALIDATION_ERROR"),
        ({"transaction_type": "BOTH"}, 422, "VALIDATION_ERROR"),
    ],
)
def test_recommendation_errors(client, world, as_alice, overrides, status, code):
    body = purchase(world.dining.id)
    body.update(overrides)

    resp = client.post(f"/api/users/{world.user.id}/recommendations", json=body, headers=as_alice)

    assert resp.status_code == status
    assert resp.json()["code"] == code


def test_recommendation_for_another_user_is_forbidden(client, world):
    resp = client.post(
        f"/api/users/{world.user.id}/recommendations",
        json=purchase(world.dining.id),
        headers={"X-User-Id": str(world.user.id + 1)},
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


def test_catalog_writes_need_admin(client, world):
    assert client.post("/api/banks", json={"name": "New Bank"}).status_code == 403

    resp = client.post("/api/banks", json={"name": "New Bank"}, headers=ADMIN)
    assert resp.status_code == 201
    assert resp.json()["name"] == "New Bank"

    names = [b["name"] for b in client.get("/api/banks").json()]
    assert names == ["New Bank", "Other Bank", "Test Bank"]


def test_categories_listing(client, world):
    resp = client.get("/api/transaction-categories")

    assert resp.status_code == 200
    dining = resp.json()[0]
    assert dining["name"] == "Dining"
    assert dining["sub_categories"][0]["name"] == "Food Delivery"


def test_card_and_rule_lifecycle(client, world):
    card = client.post(
        "/api/credit-cards",
        json={"name": "API Card", "bank_id": world.bank.id, "annual_fee": "199"},
        headers=ADMIN,
    ).json()

    rule_body = {
        "credit_card_id": card["id"],
        "category_id": world.dining.id,
        "reward_value": "5",
        "monthly_cap": "100",
    }
    created = client.post("/api/reward-rules", json=rule_body, headers=ADMIN)
    assert created.status_code == 201
    rule = created.json()
    assert rule["description"] == "5% cashback, capped at $100.00/month"

    duplicate = client.post("/api/reward-rules", json=rule_body, headers=ADMIN)
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "DATA_INTEGRITY_ERROR"

    patched = client.patch(
        f"/api/reward-rules/{rule['id']}", json={"monthly_cap": None}, headers=ADMIN
    )
    assert patched.status_code == 200
    assert patched.json()["monthly_cap"] is None
    assert patched.json()["reward_value"].startswith("5")

    detail = client.get(f"/api/credit-cards/{card['id']}").json()
    assert len(detail["reward_rules"]) == 1

    assert client.delete(f"/api/reward-rules/{rule['id']}", headers=ADMIN).status_code == 204
    assert client.get(f"/api/reward-rules/credit-card/{card['id']}").json() == []
    assert client.get("/api/credit-cards/9999").status_code == 404


def test_wallet_endpoints(client, world, new_card, as_alice):
    card = new_card("Wallet Card", in_wallet=False)
    url = f"/api/users/{world.user.id}/credit-cards"

    added = client.post(
        url,
        json={"credit_card_id": card.id, "card_number": "4111 1111 1111 4242", "expiry_date": "12/27"},
        headers=as_alice,
    )
    assert added.status_code == 201
    link = added.json()
    assert link["card_number"] == "**** 4242"
    assert link["expiry_date"] == "2027-12-31"

    again = client.post(url, json={"credit_card_id": card.id}, headers=as_alice)
    assert again.status_code == 422

    assert [c["name"] for c in client.get(url, headers=as_alice).json()] == ["Wallet Card"]
    assert client.get(url).status_code == 403

    assert client.delete(f"{url}/{link['id']}", headers=as_alice).status_code == 204
    assert client.get(url, headers=as_alice).json() == []


def test_ambiguous_rules_are_a_server_error(client, session, world, new_card, as_alice):
    card = new_card("Twice")
    for value in ("1", "2"):
        session.add(RewardRule(card_id=card.id, category_id=world.dining.id, reward_value=Decimal(value)))
    session.commit()

    resp = client.post(
        f"/api/users/{world.user.id}/recommendations",
        json=purchase(world.dining.id),
        headers=as_alice,
    )

    assert resp.status_code == 500
    assert resp.json()["code"] == "DATA_INTEGRITY_ERROR"


def test_storage_outage_is_service_unavailable(client, session, world, new_card, as_alice, monkeypatch):
    new_card("Any", rules=[{"category_id": world.dining.id, "reward_value": 1}])

    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "exec", broken)
    resp = client.post(
        f"/api/users/{world.user.id}/recommendations",
        json=purchase(world.dining.id),
        headers=as_alice,
    )

    assert resp.status_code == 503
    assert resp.json()["code"] == "TRANSIENT_FETCH_ERROR"


@pytest.mark.parametrize(
    "headers",
    [{"X-User-Role": "superuser"}, {"X-User-Id": "alice"}],
)
def test_bad_identity_headers(client, world, headers):
    resp = client.post("/api/banks", json={"name": "New Bank"}, headers=headers)

    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"
    assert "message" in resp.json()


def test_role_header_is_case_insensitive(client, world):
    resp = client.post("/api/banks", json={"name": "New Bank"}, headers={"X-User-Role": "admin"})

    assert resp.status_code == 201
