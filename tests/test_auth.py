import uuid

import pytest
from fastapi import HTTPException
from jose import jwt

from app.core.auth import decode_access_token
from app.models.user import User


def make_token(sub: str, email: str | None = "new.shopper@example.com", secret: str = "test-jwt-secret") -> str:
    claims = {"sub": sub, "aud": "authenticated"}
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


def test_decode_ignores_audience():
    sub = str(uuid.uuid4())

    assert decode_access_token(make_token(sub))["sub"] == sub


def test_decode_rejects_wrong_secret():
    with pytest.raises(HTTPException) as exc_info:
        decode_access_token(make_token(str(uuid.uuid4()), secret="someone-else"))

    assert exc_info.value.status_code == 401


def test_first_request_provisions_profile(client, session):
    sub = uuid.uuid4()

    response = client.get(
        "/api/v1/users/me",
        headers={"Authorization": f"Bearer {make_token(str(sub))}"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "new.shopper"
    assert body["role"] == "user"
    assert body["email_order_updates"] is True
    assert session.get(User, sub) is not None


@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        make_token("not-a-uuid"),
        make_token(str(uuid.uuid4()), email=None),
    ],
    ids=["garbage", "bad-sub", "no-email"],
)
def test_bad_tokens_are_401(client, token):
    response = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_guest_is_401_on_protected_route(client):
    assert client.get("/api/v1/orders/me").status_code == 401


def test_non_admin_gets_403(client, customer, auth_headers):
    response = client.get("/api/v1/orders", headers=auth_headers(customer))

    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "not_authorized"


def test_profile_update_and_opt_out(client, customer, auth_headers):
    response = client.patch(
        "/api/v1/users/me",
        json={"name": "  Ayesha K  ", "email_order_updates": False},
        headers=auth_headers(customer),
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Ayesha K"
    assert response.json()["email_order_updates"] is False


def test_admin_promotes_but_cannot_change_own_role(client, admin, customer, auth_headers):
    promoted = client.patch(
        f"/api/v1/users/{customer.id}/role", json={"role": "admin"}, headers=auth_headers(admin)
    )
    assert promoted.json()["role"] == "admin"

    own = client.patch(f"/api/v1/users/{admin.id}/role", json={"role": "user"}, headers=auth_headers(admin))
    assert own.status_code == 400
    assert own.json()["detail"]["message"] == "You cannot change your own role"


def test_admin_lists_users(client, admin, customer, auth_headers):
    page = client.get("/api/v1/users", params={"role": "user"}, headers=auth_headers(admin)).json()

    assert page["total"] == 1
    assert page["items"][0]["id"] == str(customer.id)
