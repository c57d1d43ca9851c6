"""HTTP tests for the claim endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine
from structlog.testing import capture_logs

from src.tapcards.domain.errors import GenerationExhausted
from src.tapcards.main import create_app
from src.tapcards.models import Tenant, User
from src.tapcards.services import ProvisioningEngine
from tests.helpers import auth_headers, create_user

pytestmark = pytest.mark.integration


@pytest.fixture
def headers(admin: User, tenant: Tenant) -> dict[str, str]:
    return auth_headers(admin, tenant)


async def new_card(client: AsyncClient, headers) -> dict:
    response = await client.post("/api/v1/cards", json={}, headers=headers)
    assert response.status_code == 201
    return response.json()


async def invite(client: AsyncClient, headers, card_id: str, **extra) -> dict:
    payload = {"card_id": card_id, "email": "Jane@Example.com", "name": "Jane", **extra}
    response = await client.post("/api/v1/claim/generate", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def plaintext_of(claim_url: str) -> str:
    return claim_url.rsplit("/", 1)[-1]


async def test_generate_info_and_claim(client: AsyncClient, headers, db_session, tenant):
    card = await new_card(client, headers)
    issued = await invite(client, headers, card["id"], require_email_verification=False)
    assert issued["assigned_email"] == "jane@example.com"
    token = plaintext_of(issued["claim_url"])

    response = await client.get(f"/api/v1/claim/{token}")
    assert response.status_code == 200
    info = response.json()
    assert info["tenant_name"] == tenant.name
    assert info["card_uid"] == card["card_uid"]
    assert info["require_email_verification"] is False

    claimant = await create_user(db_session, email="jane@example.com")
    response = await client.post(
        f"/api/v1/claim/{token}/claim",
        json={"profile": {"username": "jane_doe", "display_name": "Jane Doe"}},
        headers=auth_headers(claimant, tenant),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["card_uid"] == card["card_uid"]
    assert body["status"] == "active"
    assert body["membership_created"] is True
    assert body["profile_id"] is not None

    response = await client.get(f"/api/v1/claim/{token}")
    assert response.status_code == 400
    assert response.json()["code"] == "TOKEN_INVALID"


async def test_claim_requires_authentication(client: AsyncClient, headers):
    card = await new_card(client, headers)
    issued = await invite(client, headers, card["id"], require_email_verification=False)

    response = await client.post(f"/api/v1/claim/{plaintext_of(issued['claim_url'])}/claim")

    assert response.status_code == 401


async def test_unknown_token_body_hides_reason(client: AsyncClient):
    response = await client.get("/api/v1/claim/does-not-exist")

    assert response.status_code == 400
    body = response.json()
    assert body == {
        "detail": "Invalid or expired claim token",
        "code": "TOKEN_INVALID",
        "request_id": body["request_id"],
    }


async def test_verification_over_http(
    client: AsyncClient, headers, db_session, tenant, monkeypatch
):
    codes: list[str] = []
    monkeypatch.setattr(
        "src.tapcards.services.engine.send_verification_code_email",
        lambda to, code, tenant_name: codes.append(code) or True,
    )
    card = await new_card(client, headers)
    issued = await invite(client, headers, card["id"])
    token = plaintext_of(issued["claim_url"])
    claimant = await create_user(db_session, email="jane@example.com")
    claimant_headers = auth_headers(claimant, tenant)

    response = await client.post(f"/api/v1/claim/{token}/claim", headers=claimant_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "VERIFICATION_FAILED"

    response = await client.post(f"/api/v1/claim/{token}/verify-email")
    assert response.status_code == 200
    assert response.json()["email_verified"] is False

    response = await client.post(f"/api/v1/claim/{token}/verify-code", json={"code": "12ab"})
    assert response.status_code == 422

    response = await client.post(f"/api/v1/claim/{token}/verify-code", json={"code": codes[0]})
    assert response.status_code == 200
    assert response.json()["email_verified"] is True

    response = await client.post(f"/api/v1/claim/{token}/claim", headers=claimant_headers)
    assert response.status_code == 200


async def test_bulk_generate_partial_success(client: AsyncClient, headers):
    first = await new_card(client, headers)
    second = await new_card(client, headers)
    await invite(client, headers, second["id"])

    response = await client.post(
        "/api/v1/claim/bulk-generate",
        json={
            "invitations": [
                {"card_id": first["id"], "email": "a@example.com"},
                {"card_id": second["id"], "email": "b@example.com"},
            ]
        },
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded"] == 1
    assert body["failed"] == 1
    failed = next(r for r in body["results"] if not r["success"])
    assert failed["card_id"] == second["id"]
    assert failed["code"] == "INVALID_TRANSITION"


async def test_list_and_revoke(client: AsyncClient, headers):
    card = await new_card(client, headers)
    issued = await invite(client, headers, card["id"])

    response = await client.get("/api/v1/claim", params={"status": "pending"}, headers=headers)
    assert [t["id"] for t in response.json()["items"]] == [issued["id"]]

    response = await client.post(
        f"/api/v1/claim/tokens/{issued['id']}/revoke",
        json={"reason": "sent to the wrong person"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "revoked"

    response = await client.get(f"/api/v1/cards/{card['id']}", headers=headers)
    assert response.json()["status"] == "inventory"
    assert response.json()["claim_token_id"] is None

    response = await client.get(f"/api/v1/claim/{plaintext_of(issued['claim_url'])}")
    assert response.status_code == 400


async def test_audit_log_lists_claim_events(client: AsyncClient, headers):
    card = await new_card(client, headers)
    await invite(client, headers, card["id"])

    response = await client.get(
        "/api/v1/audit", params={"action": "claim.generate"}, headers=headers
    )

    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["entity_type"] == "claim_token"


@pytest.mark.parametrize("error", [RuntimeError("db exploded"), GenerationExhausted(10)])
async def test_server_error_logs_mask_claim_token(engine: AsyncEngine, monkeypatch, error):
    secret = "Zq9-plaintext-claim-token-secret"

    async def fail(self, token):
        raise error

    monkeypatch.setattr(ProvisioningEngine, "claim_info", fail)
    transport = ASGITransport(app=create_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        with capture_logs() as logs:
            response = await client.get(f"/api/v1/claim/{secret}")

    assert response.status_code == 500
    assert secret not in response.text
    assert logs
    assert all(secret not in repr(entry) for entry in logs)
    assert any(entry.get("path") == "/api/v1/claim/***" for entry in logs)
