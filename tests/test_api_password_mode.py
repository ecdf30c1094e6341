"""
tests/test_api_password_mode.py -- /api/login and /api/register with AUTH_MODE=password.

Covers:
  - admin logs in with username/password
  - wrong password and unknown username give the same 401 bad_credentials body
  - missing fields are 400 invalid_format
  - self-registration requires an allow-listed CNIC, then login works
  - correct password for a revoked CNIC is 401 not_authorized
  - passwords over bcrypt's 72-byte limit are 400 on register, 401 on login
  - password whitespace is kept; username and CNIC are trimmed
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.store import CredentialStore
from conftest import ADMIN_PASSWORD, ADMIN_USERNAME, MEMBER_CNIC, OTHER_MEMBER_CNIC, UNLISTED_CNIC, bearer, login


def test_admin_password_login(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, _ = password_client
    token = login(client, username=ADMIN_USERNAME, password=ADMIN_PASSWORD)
    data = client.get("/api/user", headers=bearer(token)).json()
    assert data["username"] == ADMIN_USERNAME
    assert data["is_admin"] is True


def test_bad_credentials_are_indistinguishable(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, _ = password_client
    wrong_password = client.post("/api/login", json={"username": ADMIN_USERNAME, "password": "not-the-password"})
    unknown_user = client.post("/api/login", json={"username": "nobody-here", "password": "not-the-password"})
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json()
    assert wrong_password.json()["error"]["code"] == "bad_credentials"
    assert wrong_password.headers["cache-control"] == "no-store"


def test_missing_fields_invalid_format(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, _ = password_client
    for body in ({"username": ADMIN_USERNAME}, {"password": ADMIN_PASSWORD}, {"cnic": MEMBER_CNIC}):
        resp = client.post("/api/login", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_format"


def test_register_unlisted_cnic_rejected(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, store = password_client
    resp = client.post("/api/register", json={"username": "outsider", "password": "secret123", "cnic": UNLISTED_CNIC})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "not_authorized"
    assert store.find_user_by_username("outsider") is None


def test_register_then_login(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, _ = password_client
    resp = client.post("/api/register", json={"username": "member_one", "password": "secret123", "cnic": MEMBER_CNIC})
    assert resp.status_code == 201
    assert resp.json()["is_admin"] is False
    assert "set-cookie" not in resp.headers

    token = login(client, username="member_one", password="secret123")
    assert client.get("/api/user", headers=bearer(token)).json()["cnic"] == MEMBER_CNIC


def test_register_duplicate_username_conflicts(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, _ = password_client
    resp = client.post(
        "/api/register", json={"username": ADMIN_USERNAME, "password": "secret123", "cnic": OTHER_MEMBER_CNIC}
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "conflict"


def test_register_invalid_username(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, _ = password_client
    resp = client.post("/api/register", json={"username": "no spaces", "password": "secret123", "cnic": OTHER_MEMBER_CNIC})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_format"


def test_revoked_member_with_right_password_not_authorized(
    password_client: tuple[TestClient, CredentialStore],
) -> None:
    client, store = password_client
    cnic = "4545454545454"
    store.authorize_cnic(cnic, added_by=1)
    assert (
        client.post("/api/register", json={"username": "member_two", "password": "secret123", "cnic": cnic}).status_code
        == 201
    )
    store.revoke_cnic(cnic)

    resp = client.post("/api/login", json={"username": "member_two", "password": "secret123"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "not_authorized"


def test_register_multibyte_password_over_limit(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, store = password_client
    resp = client.post("/api/register", json={"username": "member_utf8", "password": "é" * 40, "cnic": OTHER_MEMBER_CNIC})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_format"
    assert store.find_user_by_username("member_utf8") is None


def test_over_long_login_password_is_bad_credentials(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, _ = password_client
    resp = client.post("/api/login", json={"username": ADMIN_USERNAME, "password": "a" * 80})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "bad_credentials"


def test_password_whitespace_is_significant(password_client: tuple[TestClient, CredentialStore]) -> None:
    client, store = password_client
    cnic = "4646464646464"
    store.authorize_cnic(cnic, added_by=1)
    resp = client.post("/api/register", json={"username": "  spaced  ", "password": "  secret123  ", "cnic": f" {cnic} "})
    assert resp.status_code == 201
    assert resp.json()["username"] == "spaced"

    assert client.post("/api/login", json={"username": "spaced", "password": "secret123"}).status_code == 401
    token = login(client, username=" spaced ", password="  secret123  ")
    assert client.get("/api/user", headers=bearer(token)).json()["cnic"] == cnic
