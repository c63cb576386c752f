import pytest
from conftest import register_and_login

API = "/api/v1/auth"


@pytest.mark.asyncio
async def test_register_login_and_me(client):
    headers = await register_and_login(client, email="Alice@Example.com")
    response = await client.get(f"{API}/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.com"
    assert response.json()["name"] == "Reader"


@pytest.mark.asyncio
async def test_duplicate_registration(client):
    await register_and_login(client)
    response = await client.post(f"{API}/register", json={"email": "reader@example.com", "password": "another1"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_register_validation(client):
    response = await client.post(f"{API}/register", json={"email": "not-an-email", "password": "secret123"})
    assert response.status_code == 422
    response = await client.post(f"{API}/register", json={"email": "a@b.com", "password": "123"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_bad_credentials(client):
    await register_and_login(client)
    response = await client.post(f"{API}/login", json={"email": "reader@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    response = await client.post(f"{API}/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_requests_without_valid_token(client):
    response = await client.get(f"{API}/me")
    assert response.status_code == 401
    response = await client.get(f"{API}/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token(client):
    await register_and_login(client)
    tokens = (await client.post(
        f"{API}/login", json={"email": "reader@example.com", "password": "secret123"}
    )).json()

    response = await client.post(f"{API}/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 200
    assert response.json()["tokenType"] == "bearer"

    # Access tokens are not accepted as refresh tokens, and vice versa
    response = await client.post(f"{API}/refresh", json={"refreshToken": tokens["accessToken"]})
    assert response.status_code == 401
    response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {tokens['refreshToken']}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_profile_and_change_password(client):
    headers = await register_and_login(client)
    response = await client.patch(f"{API}/me", json={"name": "Dr Reader"}, headers=headers)
    assert response.json()["name"] == "Dr Reader"

    response = await client.post(
        f"{API}/change-password", json={"currentPassword": "nope", "newPassword": "newsecret"}, headers=headers
    )
    assert response.status_code == 400

    response = await client.post(
        f"{API}/change-password", json={"currentPassword": "secret123", "newPassword": "newsecret"}, headers=headers
    )
    assert response.status_code == 204
    response = await client.post(f"{API}/login", json={"email": "reader@example.com", "password": "newsecret"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_throttled_after_repeated_failures(client):
    await register_and_login(client)
    for _ in range(5):
        response = await client.post(f"{API}/login", json={"email": "reader@example.com", "password": "wrong-pass"})
        assert response.status_code == 401

    response = await client.post(f"{API}/login", json={"email": "reader@example.com", "password": "secret123"})
    assert response.status_code == 429
