"""Auth API tests — register, login, refresh, me.

Learn: These use unauthenticated_client so the real JWT pipeline runs.
"""

import pytest

from edushare.auth.jwt import create_access_token, create_refresh_token


async def _register(client, username="dana", email="dana@example.com", password="correct-horse"):
    return await client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email,
            "password": password,
            "profile": {"bio": "Learning calculus", "department": "Mathematics"},
        },
    )


async def _login(client, login="dana", password="correct-horse"):
    return await client.post("/api/v1/auth/login", json={"login": login, "password": password})


@pytest.mark.asyncio
async def test_register(unauthenticated_client):
    r = await _register(unauthenticated_client)
    assert r.status_code == 201
    user = r.json()
    assert user["username"] == "dana"
    assert user["role"] == "student"
    assert "password_hash" not in user


@pytest.mark.asyncio
async def test_register_duplicate(unauthenticated_client):
    await _register(unauthenticated_client)
    r = await _register(unauthenticated_client, email="other@example.com")
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_register_validation(unauthenticated_client):
    r = await _register(unauthenticated_client, email="not-an-email")
    assert r.status_code == 422
    r = await _register(unauthenticated_client, password="short")
    assert r.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("login", ["dana", "DANA@example.com"])
async def test_login_by_username_or_email(unauthenticated_client, login):
    await _register(unauthenticated_client)
    r = await _login(unauthenticated_client, login=login)
    assert r.status_code == 200
    tokens = r.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["access_token"]
    assert tokens["refresh_token"]


@pytest.mark.asyncio
async def test_login_wrong_password(unauthenticated_client):
    await _register(unauthenticated_client)
    r = await _login(unauthenticated_client, password="wrong-password")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_with_token(unauthenticated_client):
    await _register(unauthenticated_client)
    token = (await _login(unauthenticated_client)).json()["access_token"]

    r = await unauthenticated_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert r.status_code == 200
    me = r.json()
    assert me["username"] == "dana"
    assert me["profile"]["department"] == "Mathematics"
    assert "email" not in me


@pytest.mark.asyncio
async def test_me_without_token(unauthenticated_client):
    r = await unauthenticated_client.get("/api/v1/auth/me")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(unauthenticated_client, users):
    refresh = create_refresh_token(users["alice"])
    r = await unauthenticated_client.get(
        "/api/v1/chat/users", headers={"Authorization": f"Bearer {refresh}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh(unauthenticated_client, users):
    r = await unauthenticated_client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": create_refresh_token(users["alice"])},
    )
    assert r.status_code == 200
    assert r.json()["user_id"] == users["alice"]


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(unauthenticated_client, users):
    r = await unauthenticated_client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": create_access_token(users["alice"])},
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_real_token_reaches_chat_routes(unauthenticated_client, users):
    token = create_access_token(users["alice"], username="alice")
    r = await unauthenticated_client.get(
        "/api/v1/chat/users", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 200
    assert [u["username"] for u in r.json()] == ["bob", "carol"]
