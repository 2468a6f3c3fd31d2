"""Auth endpoint tests."""

import uuid

import pytest

from nest.core.security import create_access_token
from nest.services import auth_service
from nest.services.auth_service import FirebaseIdentity


def _email(prefix="auth"):
    return f"{prefix}_{uuid.uuid4().hex[:6]}@test.com"


def test_register_login_and_me(client):
    email = _email()
    r = client.post("/auth/register", json={"email": email, "password": "secret1", "name": "Ada"})
    assert r.status_code == 201
    created = r.json()["data"]
    assert created["role"] == "resident"
    assert created["notification_preferences"] == {"app": True, "email": True, "sms": False, "push": False}

    token = client.post("/auth/login", json={"email": email, "password": "secret1"}).json()["data"]["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["email"] == email


def test_duplicate_registration_is_400(client):
    email = _email()
    client.post("/auth/register", json={"email": email, "password": "secret1", "name": "Ada"})
    r = client.post("/auth/register", json={"email": email, "password": "secret1", "name": "Ada"})
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Email already registered"


@pytest.mark.parametrize("requested", ["admin", "moderator"])
def test_register_ignores_requested_role(client, make_user, create_report, requested):
    email = _email("climber")
    r = client.post(
        "/auth/register",
        json={"email": email, "password": "secret1", "name": "Climber", "role": requested},
    )
    assert r.status_code == 201
    assert r.json()["data"]["role"] == "resident"

    token = client.post("/auth/login", json={"email": email, "password": "secret1"}).json()["data"]["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/auth/me", headers=headers).json()["data"]["role"] == "resident"

    owner = make_user("resident")
    report = create_report(owner["headers"])
    resolve = client.post(f"/reports/{report['id']}/resolve", headers=headers)
    assert resolve.status_code == 403
    assert client.post("/predictions/generate", headers=headers).status_code == 403


def test_wrong_password_is_401(client):
    email = _email()
    client.post("/auth/register", json={"email": email, "password": "secret1", "name": "Ada"})
    r = client.post("/auth/login", json={"email": email, "password": "wrong!"})
    assert r.status_code == 401
    assert r.json()["success"] is False
    assert r.json()["error"]["message"] == "Invalid email or password"


def test_invalid_and_stale_tokens_are_401(client):
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401

    ghost = create_access_token(999999, "resident", "ghost@test.com")
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {ghost}"})
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "User not found"


def test_update_notification_preferences(client, make_user):
    user = make_user("resident")
    r = client.put("/auth/me/preferences", headers=user["headers"], json={"email": False, "push": True})
    assert r.status_code == 200
    assert r.json()["data"]["notification_preferences"] == {"app": True, "email": False, "sms": False, "push": True}


def test_firebase_login_disabled_without_credentials(client):
    r = client.post("/auth/firebase", json={"id_token": "anything"})
    assert r.status_code == 401


def test_firebase_login_creates_local_user(client, monkeypatch):
    email = _email("fb")
    uid = f"uid-{uuid.uuid4().hex[:8]}"

    def fake_verify(token):
        if token != "good-token":
            return None
        return FirebaseIdentity(uid=uid, email=email, email_verified=True, name="Fire Base")

    monkeypatch.setattr(auth_service, "verify_firebase_token", fake_verify)
    from nest.api import auth as auth_api

    monkeypatch.setattr(auth_api, "verify_firebase_token", fake_verify)

    r = client.post("/auth/firebase", json={"id_token": "good-token"})
    assert r.status_code == 200
    session = r.json()["data"]["access_token"]

    # The Firebase ID token itself is accepted as a bearer credential too.
    for token in (session, "good-token"):
        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["data"]["email"] == email
        assert me.json()["data"]["name"] == "Fire Base"
