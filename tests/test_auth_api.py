from sqlmodel import Session, select

from storefront.models.token_blacklist import TokenBlacklist
from storefront.utils.hash import hash_password, verify_password
from storefront.utils.token import create_access_token, decode_access_token

from conftest import PASSWORD, auth_headers


def _register(client, email="reader@example.com", password="s3cret-pass", confirm=None):
    return client.post(
        "/auth/register",
        json={
            "name": "Reader",
            "email": email,
            "password": password,
            "confirm_password": confirm or password,
        },
    )


def _login(client, email, password):
    return client.post("/auth/login", json={"email": email, "password": password})


def test_register_login_me_logout(client, engine):
    response = _register(client, email="Reader@Example.com")
    assert response.status_code == 201
    assert response.json()["email"] == "reader@example.com"
    assert response.json()["role"] == "user"

    response = _login(client, "reader@example.com", "s3cret-pass")
    assert response.status_code == 200
    token = response.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["name"] == "Reader"

    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/me", headers=headers).status_code == 401

    with Session(engine) as fresh:
        assert fresh.exec(select(TokenBlacklist)).one().token == token

    # a fresh login is not affected by the revoked token
    token = _login(client, "reader@example.com", "s3cret-pass").json()["access_token"]
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 200


def test_register_duplicate_email(client):
    assert _register(client).status_code == 201
    assert _register(client, email="READER@example.com").status_code == 400


def test_register_password_mismatch(client):
    assert _register(client, confirm="something-else").status_code == 422


def test_login_wrong_password(client, user):
    assert _login(client, user.email, "wrong-password").status_code == 401
    assert _login(client, "nobody@example.com", PASSWORD).status_code == 401


def test_disabled_user(client, make_user):
    disabled = make_user(can_login=False)

    assert _login(client, disabled.email, PASSWORD).status_code == 403

    token = create_access_token({"user_id": disabled.id})
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_invalid_token(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_tokens_are_unique():
    first = create_access_token({"user_id": 1})
    second = create_access_token({"user_id": 1})

    assert first != second
    assert decode_access_token(first)["user_id"] == 1


def test_password_hashing():
    hashed = hash_password("s3cret-pass")

    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret-pass", "")
    assert not verify_password("s3cret-pass", "plain-text-not-a-hash")


def test_change_password(client, user):
    response = client.put(
        "/users/me/password",
        json={"current_password": PASSWORD, "new_password": "a-new-password"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert _login(client, user.email, "a-new-password").status_code == 200
    assert _login(client, user.email, PASSWORD).status_code == 401
