"""Tests for the engine error taxonomy and its HTTP mapping."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.tapcards.core.exceptions import setup_exception_handlers
from src.tapcards.domain.errors import (
    CrossTenantAccess,
    GenerationExhausted,
    InvalidAssignment,
    InvalidTransition,
    QuotaExceeded,
    ResourceNotFound,
    TokenInvalid,
    VerificationFailed,
)

pytestmark = pytest.mark.unit


def test_quota_exceeded_payload():
    error = QuotaExceeded("cards", limit=1, current=1)

    assert error.status_code == 403
    assert error.payload() == {
        "detail": "Cards limit reached for this organization",
        "code": "LIMIT_EXCEEDED",
        "resource": "cards",
        "limit": 1,
        "current": 1,
        "requested": 1,
    }


def test_invalid_transition_payload():
    error = InvalidTransition("inventory", "suspend")

    assert error.status_code == 409
    assert error.message == "Cannot suspend card in status 'inventory'"
    assert error.payload()["current"] == "inventory"
    assert error.payload()["requested"] == "suspend"


@pytest.mark.parametrize("reason", ["unknown", "expired", "status_claimed", "email_mismatch"])
def test_token_invalid_hides_reason(reason):
    """Callers cannot tell unknown, expired and consumed tokens apart."""
    payload = TokenInvalid(reason).payload()
    assert payload == {"detail": "Invalid or expired claim token", "code": "TOKEN_INVALID"}


def test_verification_failed_hides_reason():
    payload = VerificationFailed("too_many_attempts").payload()
    assert payload == {"detail": "Email verification failed", "code": "VERIFICATION_FAILED"}


def test_cross_tenant_access_looks_like_not_found():
    cross = CrossTenantAccess("card")
    missing = ResourceNotFound("card")

    assert cross.status_code == missing.status_code == 404
    assert cross.payload() == missing.payload()


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (GenerationExhausted(10), 500),
        (InvalidAssignment("card is not assigned"), 400),
        (ResourceNotFound("claim token"), 404),
    ],
)
async def test_handler_maps_status_and_adds_request_id(error, status_code):
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/boom")
    async def boom():
        raise error

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/boom")

    assert response.status_code == status_code
    body = response.json()
    assert body["code"] == error.code
    assert "request_id" in body
