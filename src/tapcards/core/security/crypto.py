"""Cryptographic utilities - token hashing, verification codes and JWT decoding."""

import hmac
import secrets
from datetime import UTC, datetime, timedelta
from hashlib import sha256
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from src.tapcards.core.config import get_settings

VERIFICATION_CODE_DIGITS = 6


def hash_token(token: str) -> str:
    """Hash a token using SHA256 for secure storage."""
    return sha256(token.encode()).hexdigest()


def generate_claim_token() -> tuple[str, str]:
    """Generate an opaque claim token. Returns (plaintext, sha256 hash)."""
    token = secrets.token_urlsafe(32)
    return token, hash_token(token)


def generate_verification_code() -> str:
    """Generate a zero-padded 6-digit numeric code."""
    return f"{secrets.randbelow(10**VERIFICATION_CODE_DIGITS):0{VERIFICATION_CODE_DIGITS}d}"


def hash_verification_code(code: str, token_id: UUID) -> str:
    """Keyed hash of a verification code, bound to the token it was issued for."""
    settings = get_settings()
    message = f"{token_id}:{code}".encode()
    return hmac.new(settings.jwt_secret_key.encode(), message, sha256).hexdigest()


def verify_code_hash(code: str, token_id: UUID, expected_hash: str) -> bool:
    """Constant-time comparison of a submitted code against the stored hash."""
    return hmac.compare_digest(hash_verification_code(code, token_id), expected_hash)


def create_access_token(
    subject: str | UUID,
    tenant_id: str | UUID,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token in the shape the identity service issues."""
    settings = get_settings()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=30))

    to_encode = {
        "sub": str(subject),
        "tenant_id": str(tenant_id),
        "email": email,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(  # type: ignore[no-any-return]
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate JWT token. Returns None on any error."""
    settings = get_settings()
    try:
        return jwt.decode(  # type: ignore[no-any-return]
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
