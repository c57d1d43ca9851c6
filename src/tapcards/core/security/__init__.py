"""Security utilities - crypto and response headers."""

from src.tapcards.core.security.crypto import (
    create_access_token,
    decode_token,
    generate_claim_token,
    generate_verification_code,
    hash_token,
    hash_verification_code,
    verify_code_hash,
)
from src.tapcards.core.security.headers import SecurityHeadersMiddleware

__all__ = [
    # Crypto
    "create_access_token",
    "decode_token",
    "generate_claim_token",
    "generate_verification_code",
    "hash_token",
    "hash_verification_code",
    "verify_code_hash",
    # Middleware
    "SecurityHeadersMiddleware",
]
