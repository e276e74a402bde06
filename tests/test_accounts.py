from datetime import datetime, timedelta, timezone

from app.core.security import create_refresh_token, verify_password
from app.models.password_reset_token import PasswordResetToken
from app.models.user import User
from app.services import account_service

from conftest import make_user, auth_headers


def _register(client, email="maya@example.com", password="secret123"):
    return client.post("/api/v1/auth/register", json={"name": "Maya", "email": email, "password": password})


def test_register_login_and_me(client, smtp_configured, sent_emails):
    r = _register(client, email="Maya@Example.com")
    assert r.status_code == 201
    assert r.json()["data"]["email"] == "maya@example.com"
    assert r.json()["data"]["role"] == "CUSTOMER"
    assert [m["to"] for m in sent_emails] == ["maya@example.com"]

    r = client.post("/api/v1/auth/login", json={"email": "maya@example.com", "password": "secret123"})
    assert r.status_code == 200
    tokens = r.json()["data"]
    assert tokens["token_type"] == "bearer"
    assert tokens["role"] == "CUSTOMER"

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.json()["data"]["name"] == "Maya"


def test_register_duplicate_email(client):
    assert _register(client).status_code == 201
    r = _register(client, email="MAYA@example.com")
    assert r.status_code == 409


def test_register_short_password(client):
    assert _register(client, password="123").status_code == 400


def test_login_wrong_password_or_inactive(client, db):
    u = make_user(db, "sam@example.com", password="rightpass")
    r = client.post("/api/v1/auth/login", json={"email": "sam@example.com", "password": "wrongpass"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Invalid credentials"}

    u.is_active = False
    db.commit()
    r = client.post("/api/v1/auth/login", json={"email": "sam@example.com", "password": "rightpass"})
    assert r.status_code == 401


def test_refresh_issues_new_pair(client, customer):
    r = client.post("/api/v1/auth/refresh", json={"refresh_token": create_refresh_token(customer.id)})
    assert r.status_code == 200
    assert r.json()["data"]["access_token"]


def test_access_token_is_not_a_refresh_token(client, customer):
    access = auth_headers(customer)["Authorization"].split()[1]
    assert client.post("/api/v1/auth/refresh", json={"refresh_token": access}).status_code == 401
    assert client.post("/api/v1/auth/refresh", json={"refresh_token": "garbage"}).status_code == 401


def test_refresh_token_cannot_call_api(client, customer):
    headers = {"Authorization": f"Bearer {create_refresh_token(customer.id)}"}
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_profile_update(client, db, customer, customer_headers):
    r = client.patch("/api/v1/user/profile", headers=customer_headers, json={"name": "Johnny", "phone": "+91 98450 00000"})
    assert r.status_code == 200
    assert r.json()["data"]["phone"] == "+91 98450 00000"
    assert client.patch("/api/v1/user/profile", headers=customer_headers, json={"name": "  "}).status_code == 400


def test_change_password(client, db, customer, customer_headers):
    r = client.post("/api/v1/auth/change-password", headers=customer_headers,
                    json={"oldPassword": "nope", "newPassword": "newpass123"})
    assert r.status_code == 400

    r = client.post("/api/v1/auth/change-password", headers=customer_headers,
                    json={"oldPassword": "password123", "newPassword": "newpass123"})
    assert r.status_code == 200
    db.expire_all()
    assert verify_password("newpass123", db.get(User, customer.id).password_hash)


def test_forgot_password_does_not_reveal_accounts(client, db, customer):
    known = client.post("/api/v1/auth/forgot-password", json={"email": "john@example.com"}).json()
    unknown = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"}).json()
    assert known == unknown == {"success": True, "message": account_service.FORGOT_MESSAGE}
    assert db.query(PasswordResetToken).count() == 1


def test_new_reset_request_replaces_old_token(db, customer):
    first = account_service.request_password_reset(db, "john@example.com")
    second = account_service.request_password_reset(db, "john@example.com")
    assert first != second
    assert [t.token for t in db.query(PasswordResetToken).all()] == [second]


def test_reset_password_flow(client, db, customer, smtp_configured, sent_emails):
    token = account_service.request_password_reset(db, "john@example.com")
    assert f"/reset-password/{token}" in sent_emails[-1]["body"]

    r = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "brandnew1"})
    assert r.status_code == 200
    db.expire_all()
    assert db.query(PasswordResetToken).count() == 0
    assert verify_password("brandnew1", db.get(User, customer.id).password_hash)

    # single use
    r = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "another1"})
    assert r.status_code == 400


def test_reset_password_rejects_short_password(client, db, customer):
    token = account_service.request_password_reset(db, "john@example.com")
    r = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "123"})
    assert r.status_code == 400
    assert db.query(PasswordResetToken).count() == 1


def test_expired_reset_token_is_deleted(client, db, customer):
    token = account_service.request_password_reset(db, "john@example.com")
    row = db.get(PasswordResetToken, token)
    row.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()

    r = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "brandnew1"})
    assert r.status_code == 400
    assert "expired" in r.json()["error"]
    db.expire_all()
    assert db.get(PasswordResetToken, token) is None


def test_purge_expired_reset_tokens(db, customer, other_customer):
    account_service.request_password_reset(db, "john@example.com")
    stale = account_service.request_password_reset(db, "jane@example.com")
    db.get(PasswordResetToken, stale).expires_at = datetime.now(timezone.utc) - timedelta(hours=2)
    db.commit()

    assert account_service.purge_expired_reset_tokens(db) == 1
    assert db.query(PasswordResetToken).count() == 1
