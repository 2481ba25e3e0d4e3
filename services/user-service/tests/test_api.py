from __future__ import annotations

import pytest
from argon2 import PasswordHasher
from fastapi import FastAPI
from fastapi.testclient import TestClient

from user_service import main
from user_service.api import routes
from user_service.domain.service import AccountService
from user_service.repository import AccountRepository
from user_service.security.passwords import CredentialHasher
from user_service.security.tokens import decode_access_token, issue_access_token
from user_service.store.contracts import StoreError
from user_service.store.memory import InMemoryDocumentStore

USER_PAYLOAD = {
    "email": "a@example.com",
    "password": "secret1",
    "in_group": False,
    "is_head": True,
    "address": {
        "street_name": "Rizal St",
        "barangay": "San Isidro",
        "town": "Tanay",
        "province": "Rizal",
        "zip_code": "1980",
    },
    "profile": {
        "first_name": "Ana",
        "last_name": "Cruz",
        "birth_date": "1990-04-01",
        "phone_number": "09170000000",
    },
}


class UnavailableStore(InMemoryDocumentStore):
    def query(self, collection, filters=None):
        raise StoreError("connection lost")


def build_service(store: InMemoryDocumentStore) -> AccountService:
    hasher = CredentialHasher(PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))
    return AccountService(AccountRepository(store), hasher)


@pytest.fixture
def api_client():
    """Provide a FastAPI test client with isolated state."""
    service = build_service(InMemoryDocumentStore())

    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_service = service

    with TestClient(app) as client:
        yield client, service


def auth_headers(subject: str = "tester", email: str = "tester@example.com") -> dict[str, str]:
    token, _ = issue_access_token(subject=subject, email=email)
    return {"Authorization": f"Bearer {token}"}


def test_create_user_returns_identifiers(api_client):
    client, service = api_client

    response = client.post("/api/users", json=USER_PAYLOAD)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created"
    assert len({body["user_id"], body["address_id"], body["profile_id"]}) == 3
    assert service.get_account(body["user_id"]) is not None


def test_create_user_with_existing_email_conflicts(api_client):
    client, _ = api_client
    client.post("/api/users", json=USER_PAYLOAD)

    response = client.post("/api/users", json=USER_PAYLOAD)

    assert response.status_code == 409
    assert response.json()["detail"] == "Existing email"


def test_create_user_rejects_short_password_and_unknown_address_fields(api_client):
    client, _ = api_client

    short = client.post("/api/users", json={**USER_PAYLOAD, "password": "123"})
    extra = client.post(
        "/api/users",
        json={**USER_PAYLOAD, "address": {**USER_PAYLOAD["address"], "planet": "Earth"}},
    )

    assert short.status_code == 422
    assert extra.status_code == 422


def test_login_issues_token_for_valid_credentials(api_client):
    client, _ = api_client
    user_id = client.post("/api/users", json=USER_PAYLOAD).json()["user_id"]

    response = client.post(
        "/api/users/login", json={"email": "a@example.com", "password": "secret1"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["user_id"] == user_id
    claims = decode_access_token(body["access_token"])
    assert claims["sub"] == user_id


def test_login_rejects_wrong_password_and_unknown_email(api_client):
    client, _ = api_client
    client.post("/api/users", json=USER_PAYLOAD)

    wrong = client.post("/api/users/login", json={"email": "a@example.com", "password": "nope"})
    unknown = client.post(
        "/api/users/login", json={"email": "b@example.com", "password": "secret1"}
    )

    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json() == unknown.json()


def test_protected_routes_require_valid_token(api_client):
    client, _ = api_client

    missing = client.get("/api/users")
    invalid = client.get("/api/users", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert invalid.status_code == 403


def test_list_and_lookup_never_expose_password_hash(api_client):
    client, _ = api_client
    client.post("/api/users", json=USER_PAYLOAD)

    listing = client.get("/api/users", headers=auth_headers())
    lookup = client.get(
        "/api/users/by-email", params={"email": "a@example.com"}, headers=auth_headers()
    )

    assert listing.status_code == 200
    assert lookup.status_code == 200
    assert len(listing.json()) == 1
    for body in (listing.json()[0], lookup.json()):
        assert "password_hash" not in body
        assert "password" not in body


def test_lookup_unknown_email_returns_404(api_client):
    client, _ = api_client

    response = client.get(
        "/api/users/by-email", params={"email": "nobody@example.com"}, headers=auth_headers()
    )

    assert response.status_code == 404


def test_update_user_and_conflicting_email(api_client):
    client, _ = api_client
    client.post("/api/users", json={**USER_PAYLOAD, "email": "taken@example.com"})
    user_id = client.post("/api/users", json=USER_PAYLOAD).json()["user_id"]

    updated = client.patch(
        f"/api/users/{user_id}", json={"in_group": True}, headers=auth_headers()
    )
    conflict = client.patch(
        f"/api/users/{user_id}", json={"email": "taken@example.com"}, headers=auth_headers()
    )
    missing = client.patch("/api/users/missing", json={"in_group": True}, headers=auth_headers())

    assert updated.status_code == 200
    assert updated.json()["in_group"] is True
    assert conflict.status_code == 409
    assert missing.status_code == 404


def test_change_password_flow(api_client):
    client, _ = api_client
    client.post("/api/users", json=USER_PAYLOAD)

    changed = client.post(
        "/api/users/change-password",
        json={"email": "a@example.com", "new_password": "secret2"},
        headers=auth_headers(),
    )
    unknown = client.post(
        "/api/users/change-password",
        json={"email": "nobody@example.com", "new_password": "secret2"},
        headers=auth_headers(),
    )

    assert changed.status_code == 200
    assert unknown.status_code == 404
    old = client.post("/api/users/login", json={"email": "a@example.com", "password": "secret1"})
    new = client.post("/api/users/login", json={"email": "a@example.com", "password": "secret2"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_soft_delete_moves_user_to_deleted_listing(api_client):
    client, _ = api_client
    user_id = client.post("/api/users", json=USER_PAYLOAD).json()["user_id"]

    response = client.patch(f"/api/users/{user_id}/soft-delete", headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {"success": True, "user_id": user_id}
    assert client.get(f"/api/users/{user_id}", headers=auth_headers()).status_code == 404
    deleted = client.get("/api/users/deleted", headers=auth_headers()).json()
    assert [entry["user_id"] for entry in deleted] == [user_id]
    assert deleted[0]["address"]["town"] == "Tanay"
    assert deleted[0]["profile"]["first_name"] == "Ana"
    assert "password_hash" not in deleted[0]

    activity = client.get(f"/api/users/{user_id}/activity", headers=auth_headers()).json()
    assert {entry["activity_type"] for entry in activity} == {
        "account.created",
        "account.deleted",
    }


def test_soft_delete_unknown_user_succeeds(api_client):
    client, _ = api_client

    response = client.patch("/api/users/missing/soft-delete", headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["user_id"] == "missing"


def test_store_failure_maps_to_internal_error():
    main.app.state.account_service = build_service(UnavailableStore())
    client = TestClient(main.app, raise_server_exceptions=False)

    response = client.get("/api/users", headers=auth_headers())

    assert response.status_code == 500
    assert response.json() == {"detail": "internal server error"}


def test_healthz():
    client = TestClient(main.app)

    assert client.get("/healthz").json() == {"status": "ok"}
