"""Tests for token hashing, verification codes and bearer token parsing."""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import HTTPException
from jose import jwt

from src.tapcards.api.dependencies.auth import actor_from_token
from src.tapcards.core.config import get_settings
from src.tapcards.core.security import (
    create_access_token,
    decode_token,
    generate_claim_token,
    generate_verification_code,
    hash_token,
    hash_verification_code,
    verify_code_hash,
)

pytestmark = pytest.mark.unit


class TestClaimTokens:
    def test_plaintext_hashes_to_stored_hash(self):
        plaintext, token_hash = generate_claim_token()
        assert hash_token(plaintext) == token_hash
        assert plaintext not in token_hash

    def test_tokens_are_unique(self):
        tokens = {generate_claim_token()[0] for _ in range(100)}
        assert len(tokens) == 100

    def test_token_has_at_least_256_bits(self):
        plaintext, _ = generate_claim_token()
        # token_urlsafe(32) encodes 32 random bytes as 43 base64 characters
        assert len(plaintext) >= 43


class TestVerificationCodes:
    def test_code_is_six_digits(self):
        for _ in range(50):
            code = generate_verification_code()
            assert len(code) == 6
            assert code.isdigit()

    def test_code_hash_is_bound_to_token(self):
        token_id = uuid4()
        stored = hash_verification_code("123456", token_id)

        assert verify_code_hash("123456", token_id, stored)
        assert not verify_code_hash("123457", token_id, stored)
        assert not verify_code_hash("123456", uuid4(), stored)


class TestAccessTokens:
    def test_round_trip_to_actor(self):
        user_id, tenant_id = uuid4(), uuid4()
        token = create_access_token(user_id, tenant_id, "jane@example.com")

        actor = actor_from_token(token)

        assert actor.user_id == user_id
        assert actor.tenant_id == tenant_id
        assert actor.email == "jane@example.com"

    def test_expired_token_rejected(self):
        token = create_access_token(
            uuid4(), uuid4(), "jane@example.com", expires_delta=timedelta(seconds=-1)
        )
        assert decode_token(token) is None
        with pytest.raises(HTTPException) as exc_info:
            actor_from_token(token)
        assert exc_info.value.status_code == 401

    def test_wrong_secret_rejected(self):
        token = jwt.encode(
            {"sub": str(uuid4()), "tenant_id": str(uuid4()), "email": "a@b.c", "type": "access"},
            "another-secret-key-that-is-long-enough-000",
            algorithm="HS256",
        )
        assert decode_token(token) is None

    def test_refresh_token_type_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(uuid4()), "tenant_id": str(uuid4()), "email": "a@b.c", "type": "refresh"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(HTTPException) as exc_info:
            actor_from_token(token)
        assert exc_info.value.detail == "Invalid token type"

    def test_malformed_tenant_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(uuid4()), "tenant_id": "not-a-uuid", "email": "a@b.c", "type": "access"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(HTTPException) as exc_info:
            actor_from_token(token)
        assert exc_info.value.detail == "Invalid tenant_id in token"
