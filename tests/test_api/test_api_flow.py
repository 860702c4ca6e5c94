"""
Tests for the HTTP API: routing, error envelope, status codes
"""
import pytest
from fastapi import Header, HTTPException, status
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from cuentas.api.deps import get_db, get_current_user
from cuentas.infrastructure.db.models import User
from cuentas.main import create_app


@pytest.fixture
def client(db_engine):
    """Test client against the in-memory database, user taken from X-User-Id"""
    SessionLocal = sessionmaker(bind=db_engine)

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def override_current_user(x_user_id: int | None = Header(default=None)):
        db = SessionLocal()
        try:
            user = db.get(User, x_user_id) if x_user_id else None
        finally:
            db.close()
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        return user

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_current_user
    return TestClient(app)


def as_user(user):
    return {"X-User-Id": str(user.id)}


RENT = {
    "source": "recurring",
    "description": "Arriendo",
    "amount": 100,
    "direction": "expense",
    "period": {"year": 2020, "month": 1},
    "period_end": {"year": 2020, "month": 3},
    "payment_day": 5,
}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


def test_requires_authentication(client):
    assert client.get("/api/v1/groups").status_code == 401


def test_create_and_list_groups(client, alice):
    response = client.post("/api/v1/groups", json={"name": " Casa "}, headers=as_user(alice))
    assert response.status_code == 201
    group_id = response.json()["group_id"]

    groups = client.get("/api/v1/groups", headers=as_user(alice)).json()
    assert [(g["group_id"], g["name"], g["role"]) for g in groups] == [(group_id, "Casa", "admin")]


def test_invite_unknown_email_not_found(client, alice, bob, shared_group_id):
    response = client.post(
        f"/api/v1/groups/{shared_group_id}/invitations",
        json={"email": "nobody@example.com"},
        headers=as_user(alice),
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "user_not_found"


def test_invite_and_accept(client, alice, bob, group_id):
    response = client.post(f"/api/v1/groups/{group_id}/invitations", json={"email": bob.email},
                           headers=as_user(alice))
    assert response.status_code == 201

    pending = client.get("/api/v1/invitations", headers=as_user(bob)).json()
    assert [p["group_id"] for p in pending] == [group_id]

    response = client.post("/api/v1/invitations/accept", json={"token": response.json()["token"]},
                           headers=as_user(bob))
    assert response.json() == {"group_id": group_id}
    members = client.get(f"/api/v1/groups/{group_id}/members", headers=as_user(bob)).json()
    assert len(members) == 2


def test_non_member_forbidden(client, bob, group_id):
    response = client.get(f"/api/v1/groups/{group_id}/obligations", headers=as_user(bob))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "forbidden"


def test_validation_error_names_field(client, alice, group_id):
    response = client.post(f"/api/v1/groups/{group_id}/obligations", json={**RENT, "payment_day": 32},
                           headers=as_user(alice))
    assert response.status_code == 422
    assert response.json()["error"]["field"] == "payment_day_of_month"


def test_creator_cannot_leave(client, alice, group_id):
    response = client.post(f"/api/v1/groups/{group_id}/leave", headers=as_user(alice))
    assert response.status_code == 409


def test_obligation_payment_flow(client, alice, group_id):
    headers = as_user(alice)
    created = client.post(f"/api/v1/groups/{group_id}/obligations", json=RENT, headers=headers)
    assert created.status_code == 201
    obligation = created.json()
    assert obligation["kind"] == "recurring_expense"
    assert obligation["period_end"] == {"year": 2020, "month": 3}

    url = f"/api/v1/groups/{group_id}/months/2020/2/instances"
    before = client.get(url, headers=headers).json()
    assert [i["status"] for i in before["data"]] == ["overdue"]

    response = client.post("/api/v1/payments", json={
        "source": "recurring", "source_id": obligation["id"], "year": 2020, "month": 2,
        "amount": 100, "paid_at": "2020-02-03",
    }, headers=headers)
    assert response.status_code == 201

    after = client.get(url, headers=headers).json()
    assert after["version"] > before["version"]
    assert [i["status"] for i in after["data"]] == ["paid"]
    assert after["data"][0]["outstanding_amount"] == 0

    summary = client.get(f"/api/v1/groups/{group_id}/summary", headers=headers).json()
    assert summary["data"]["total_expense"] == 300


def test_open_ended_end_hidden(client, alice, group_id):
    body = {**RENT}
    del body["period_end"]
    obligation = client.post(f"/api/v1/groups/{group_id}/obligations", json=body, headers=as_user(alice)).json()
    assert obligation["period_end"] is None


def test_foreign_payment_not_found(client, alice, bob, group_id):
    obligation = client.post(f"/api/v1/groups/{group_id}/obligations", json=RENT, headers=as_user(alice)).json()
    payment = client.post("/api/v1/payments", json={
        "source": "recurring", "source_id": obligation["id"], "year": 2020, "month": 1, "amount": 10,
    }, headers=as_user(alice)).json()

    response = client.patch(f"/api/v1/payments/{payment['id']}", json={"amount": 1}, headers=as_user(bob))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "payment_not_found"


def test_sync_invalidate_bumps_version(client, alice, group_id):
    headers = as_user(alice)
    before = client.get("/api/v1/sync/version", params={"group_id": group_id}, headers=headers).json()
    bumped = client.post("/api/v1/sync/invalidate", json={"group_id": group_id}, headers=headers).json()
    assert bumped["version"] == before["version"] + 1


def test_category_catalog_flow(client, alice, group_id):
    headers = as_user(alice)
    base = f"/api/v1/groups/{group_id}/categories"
    client.post(f"/api/v1/groups/{group_id}/obligations", json={**RENT, "category": "Transporte"}, headers=headers)

    listed = client.get(base, headers=headers).json()
    transporte = next(c for c in listed if c["name"] == "Transporte")
    assert transporte["usage_count"] == 1
    assert [c["name"] for c in listed if c["is_reserved"]] == ["uncategorized", "savings"]

    duplicate = client.post(base, json={"name": "transporte"}, headers=headers)
    assert duplicate.status_code == 409

    renamed = client.patch(f"{base}/{transporte['id']}", json={"name": "Movilidad"}, headers=headers)
    assert renamed.json() == {"affected_obligations": 1}
    usage = client.get(f"{base}/usage", params={"name": "Movilidad"}, headers=headers).json()
    assert usage["affected_obligations"] == 1

    deleted = client.delete(f"{base}/{transporte['id']}", headers=headers)
    assert deleted.json() == {"affected_obligations": 1}
    obligations = client.get(f"/api/v1/groups/{group_id}/obligations", headers=headers).json()
    assert obligations[0]["category"] == "uncategorized"

    restored = client.post(f"{base}/reset", headers=headers).json()["restored"]
    assert restored == ["Transporte"]


def test_reserved_category_name_rejected(client, alice, group_id):
    response = client.post(f"/api/v1/groups/{group_id}/categories", json={"name": "Savings"}, headers=as_user(alice))
    assert response.status_code == 422
    assert response.json()["error"]["field"] == "name"
