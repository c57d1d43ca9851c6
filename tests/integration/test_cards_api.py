"""HTTP tests for the card endpoints."""

import pytest
from httpx import AsyncClient

from src.tapcards.models import MembershipRole, QuotaResource, Tenant, User
from tests.helpers import auth_headers, create_tenant, create_user_with_membership

pytestmark = pytest.mark.integration


@pytest.fixture
def headers(admin: User, tenant: Tenant) -> dict[str, str]:
    return auth_headers(admin, tenant)


async def test_requires_bearer_token(client: AsyncClient):
    response = await client.get("/api/v1/cards")

    assert response.status_code == 401
    assert "request_id" in response.json()


async def test_rejects_garbage_token(client: AsyncClient):
    response = await client.get("/api/v1/cards", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


async def test_create_and_get_card(client: AsyncClient, headers):
    response = await client.post(
        "/api/v1/cards", json={"sku": "PVC-BLACK", "serial_number": " SN-9 "}, headers=headers
    )

    assert response.status_code == 201
    card = response.json()
    assert card["status"] == "inventory"
    assert card["lifecycle_stage"] == "manufactured"
    assert card["serial_number"] == "SN-9"
    assert len(card["card_uid"]) == 8

    response = await client.get(f"/api/v1/cards/{card['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["card_uid"] == card["card_uid"]


async def test_member_cannot_create(client: AsyncClient, db_session, tenant):
    member, _ = await create_user_with_membership(db_session, tenant, role=MembershipRole.MEMBER)

    response = await client.post("/api/v1/cards", json={}, headers=auth_headers(member, tenant))

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


async def test_bulk_create_and_list(client: AsyncClient, headers):
    response = await client.post(
        "/api/v1/cards/bulk",
        json={"count": 3, "batch_number": "B-1"},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["count"] == 3
    assert body["batch_number"] == "B-1"
    assert len(body["preview"]) == 3

    response = await client.get(
        "/api/v1/cards", params={"batch_number": "B-1", "limit": 2}, headers=headers
    )
    page = response.json()
    assert len(page["items"]) == 2
    assert page["has_more"] is True

    response = await client.get(
        "/api/v1/cards",
        params={"batch_number": "B-1", "limit": 2, "cursor": page["next_cursor"]},
        headers=headers,
    )
    rest = response.json()
    assert len(rest["items"]) == 1
    assert rest["has_more"] is False
    seen = {c["card_uid"] for c in page["items"] + rest["items"]}
    assert seen == set(body["preview"])


async def test_limit_exceeded_body(client: AsyncClient, db_session):
    tenant = await create_tenant(db_session, limits={QuotaResource.CARDS: 2})
    admin, _ = await create_user_with_membership(db_session, tenant)

    response = await client.post(
        "/api/v1/cards/bulk", json={"count": 3}, headers=auth_headers(admin, tenant)
    )

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "LIMIT_EXCEEDED"
    assert body["resource"] == "cards"
    assert body["limit"] == 2
    assert body["current"] == 0
    assert body["requested"] == 3
    assert "request_id" in body


async def test_invalid_transition_body(client: AsyncClient, headers):
    card = (await client.post("/api/v1/cards", json={}, headers=headers)).json()

    response = await client.post(f"/api/v1/cards/{card['id']}/suspend", headers=headers)

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "INVALID_TRANSITION"
    assert body["current"] == "inventory"


async def test_lifecycle_and_public_tap(client: AsyncClient, headers):
    card = (await client.post("/api/v1/cards", json={}, headers=headers)).json()
    uid = card["card_uid"]

    response = await client.post(f"/api/v1/cards/{uid.lower()}/tap")
    assert response.status_code == 200
    assert response.json()["redirect_url"] is None

    response = await client.post(f"/api/v1/cards/{card['id']}/activate", headers=headers)
    assert response.json()["status"] == "active"

    response = await client.get(f"/api/v1/cards/public/{uid}")
    assert response.status_code == 200
    assert response.json()["redirect_url"] == f"http://localhost:3000/c/{uid}"

    response = await client.get("/api/v1/cards/stats", headers=headers)
    stats = response.json()
    assert stats["total_taps"] == 1
    assert stats["total_views"] == 1


async def test_unknown_public_card(client: AsyncClient):
    response = await client.get("/api/v1/cards/public/ZZZZZZZZ")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_other_tenant_card_is_hidden(client: AsyncClient, headers, db_session):
    other = await create_tenant(db_session)
    other_admin, _ = await create_user_with_membership(db_session, other)
    foreign = (
        await client.post("/api/v1/cards", json={}, headers=auth_headers(other_admin, other))
    ).json()

    response = await client.get(f"/api/v1/cards/{foreign['id']}", headers=headers)

    assert response.status_code == 404


async def test_quota_endpoint(client: AsyncClient, headers, tenant):
    await client.post("/api/v1/cards", json={}, headers=headers)

    response = await client.get(f"/api/v1/tenants/{tenant.id}/quota", headers=headers)

    assert response.status_code == 200
    quotas = {row["resource"]: row for row in response.json()["quotas"]}
    assert quotas["cards"]["usage"] == 1
    assert quotas["cards"]["quota_limit"] == 10
    assert quotas["cards"]["is_unbounded"] is False


async def test_quota_of_other_tenant_is_hidden(client: AsyncClient, headers, db_session):
    other = await create_tenant(db_session)

    response = await client.get(f"/api/v1/tenants/{other.id}/quota", headers=headers)

    assert response.status_code == 404
