from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import select
from conftest import create_paper
from litreview.core.encryption import decrypt_value, encrypt_value, mask_secret
from litreview.models import PublisherAccount

API = "/api/v1/publishers"


def test_encryption_round_trip_and_masking():
    token = encrypt_value("sk-live-abcdef123456")
    assert token != "sk-live-abcdef123456"
    assert decrypt_value(token) == "sk-live-abcdef123456"
    assert encrypt_value("") is None
    assert decrypt_value("not-a-fernet-token") is None
    assert mask_secret("sk-live-abcdef123456") == "********3456"
    assert mask_secret("abc") == "********"


# Secrets are stored encrypted and only ever returned masked
@pytest.mark.asyncio
async def test_account_secrets_are_encrypted(client, auth_headers, session_maker):
    response = await client.post(
        f"{API}/accounts",
        json={"publisher": "ieee", "accountEmail": "me@uni.edu", "accessToken": "tok-1234567890"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["hasAccessToken"] is True
    assert body["hasInstitutionalCredentials"] is False
    assert body["maskedAccessToken"] == "********7890"
    assert body["verificationStatus"] == "pending"
    assert "accessToken" not in body

    async with session_maker() as session:
        stored = (await session.execute(select(PublisherAccount))).scalar_one()
    assert stored.access_token != "tok-1234567890"
    assert decrypt_value(stored.access_token) == "tok-1234567890"

    response = await client.post(f"{API}/accounts", json={"publisher": "ieee"}, headers=auth_headers)
    assert response.status_code == 409

    response = await client.post(f"{API}/accounts", json={"publisher": "jstor"}, headers=auth_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_verify_account(client, auth_headers):
    valid = (await client.post(
        f"{API}/accounts", json={"publisher": "acm", "accessToken": "abc12345"}, headers=auth_headers
    )).json()
    expired = (await client.post(
        f"{API}/accounts",
        json={
            "publisher": "springer",
            "accessToken": "abc12345",
            "tokenExpiresAt": (datetime.now(timezone.utc) - timedelta(days=1)).isoformat(),
        },
        headers=auth_headers,
    )).json()
    empty = (await client.post(f"{API}/accounts", json={"publisher": "wiley"}, headers=auth_headers)).json()
    institutional = (await client.post(
        f"{API}/accounts",
        json={"publisher": "elsevier", "institutionName": "Uni", "institutionalCredentials": "user:pass"},
        headers=auth_headers,
    )).json()

    results = {}
    for account in (valid, expired, empty, institutional):
        response = await client.post(f"{API}/accounts/{account['id']}/verify", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["lastVerifiedAt"] is not None
        results[account["publisher"]] = response.json()["verificationStatus"]

    assert results == {"acm": "verified", "springer": "expired", "wiley": "failed", "elsevier": "verified"}


@pytest.mark.asyncio
async def test_update_and_delete_account(client, auth_headers, other_headers):
    account = (await client.post(
        f"{API}/accounts", json={"publisher": "arxiv", "accessToken": "first-token"}, headers=auth_headers
    )).json()
    await client.post(f"{API}/accounts/{account['id']}/verify", headers=auth_headers)

    response = await client.patch(
        f"{API}/accounts/{account['id']}", json={"accessToken": "second-token"}, headers=auth_headers
    )
    assert response.json()["maskedAccessToken"] == "********oken"
    assert response.json()["verificationStatus"] == "pending"

    response = await client.patch(f"{API}/accounts/{account['id']}", json={"isActive": False}, headers=other_headers)
    assert response.status_code == 403

    response = await client.get(f"{API}/accounts", headers=auth_headers)
    assert [a["publisher"] for a in response.json()] == ["arxiv"]

    response = await client.delete(f"{API}/accounts/{account['id']}", headers=auth_headers)
    assert response.status_code == 204
    response = await client.get(f"{API}/accounts", headers=auth_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_download_logs(client, auth_headers):
    paper = await create_paper(client, auth_headers)
    response = await client.post(
        f"{API}/downloads",
        json={"paperId": paper["id"], "downloadMethod": "open_access"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    log = response.json()
    assert log["downloadStatus"] == "pending"
    assert log["completedAt"] is None
    assert log["retryCount"] == 0

    response = await client.patch(
        f"{API}/downloads/{log['id']}",
        json={"downloadStatus": "failed", "errorMessage": "403 from publisher", "retryCount": 1},
        headers=auth_headers,
    )
    body = response.json()
    assert body["downloadStatus"] == "failed"
    assert body["completedAt"] is not None
    assert body["errorMessage"] == "403 from publisher"

    await client.post(
        f"{API}/downloads",
        json={"paperId": paper["id"], "downloadMethod": "manual", "downloadStatus": "success"},
        headers=auth_headers,
    )
    response = await client.get(f"{API}/downloads?paperId={paper['id']}", headers=auth_headers)
    assert len(response.json()) == 2
    assert response.json()[0]["downloadMethod"] == "manual"

    response = await client.get(f"{API}/downloads?paperId={paper['id'] + 100}", headers=auth_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_download_log_for_foreign_paper(client, auth_headers, other_headers):
    theirs = await create_paper(client, other_headers)
    response = await client.post(
        f"{API}/downloads", json={"paperId": theirs["id"], "downloadMethod": "manual"}, headers=auth_headers
    )
    assert response.status_code == 403
