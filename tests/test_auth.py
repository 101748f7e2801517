# Auth API tests: signup/login round trip, duplicate emails, token checks and error envelopes.
from __future__ import annotations

from typing import Tuple

from fastapi.testclient import TestClient

from factories import auth, make_user


def signup(client: TestClient, email: str, password: str, role: str | None = None) -> Tuple[str, dict]:
    payload = {"email": email, "password": password, "fullName": "Tran Thi B"}
    if role:
        payload["role"] = role
    r = client.post("/api/auth/signup", json=payload)
    assert r.status_code == 201, r.text
    data = r.json()
    return data["accessToken"], data["user"]


def test_signup_then_login(client: TestClient):
    token, user = signup(client, "Owner@Example.com", "changeme123", "LANDLORD")
    assert token
    assert user["email"] == "owner@example.com"
    assert user["role"] == "LANDLORD"
    assert user["fullName"] == "Tran Thi B"

    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "changeme123"})
    assert r.status_code == 200, r.text
    assert r.json()["user"]["id"] == user["id"]

    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {r.json()['accessToken']}"})
    assert r.status_code == 200
    assert r.json()["email"] == "owner@example.com"


def test_signup_duplicate_email_conflict(client: TestClient):
    signup(client, "dup@example.com", "changeme123")
    r = client.post(
        "/api/auth/signup", json={"email": "dup@example.com", "password": "changeme123", "fullName": "Le Van C"}
    )
    assert r.status_code == 409
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "CONFLICT"


def test_signup_cannot_self_assign_admin(client: TestClient):
    r = client.post(
        "/api/auth/signup",
        json={"email": "boss@example.com", "password": "changeme123", "fullName": "Boss", "role": "ADMIN"},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_login_wrong_password(client: TestClient):
    signup(client, "user@example.com", "changeme123")
    r = client.post("/api/auth/login", json={"email": "user@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


def test_protected_route_requires_token(client: TestClient):
    r = client.get("/api/contracts")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"

    r = client.get("/api/contracts", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_token_for_seeded_user(client: TestClient, db):
    staff = make_user(db, "STAFF")
    r = client.get("/api/auth/me", headers=auth(staff))
    assert r.status_code == 200
    assert r.json()["role"] == "STAFF"


def test_validation_error_envelope(client: TestClient):
    r = client.post("/api/auth/signup", json={"email": "not-an-email", "password": "short"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["error"]["details"]}
    assert "body.email" in fields
    assert "body.password" in fields


def test_healthz(client: TestClient):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
