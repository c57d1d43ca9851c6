"""Claim token validity rules as pure functions."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.tapcards.domain.errors import InvalidRequest, TokenInvalid, VerificationFailed
from src.tapcards.models.enums import ClaimTokenStatus


@dataclass(frozen=True)
class TokenSnapshot:
    status: ClaimTokenStatus
    expires_at: datetime
    used_count: int
    max_uses: int
    assigned_email: str
    require_email_verification: bool
    email_verified: bool
    verification_code_hash: str | None = None
    verification_code_expires_at: datetime | None = None

    @classmethod
    def of(cls, token: Any) -> "TokenSnapshot":
        return cls(
            status=ClaimTokenStatus(token.status),
            expires_at=token.expires_at,
            used_count=token.used_count,
            max_uses=token.max_uses,
            assigned_email=token.assigned_email,
            require_email_verification=token.require_email_verification,
            email_verified=token.email_verified,
            verification_code_hash=token.verification_code_hash,
            verification_code_expires_at=token.verification_code_expires_at,
        )


def invalid_reason(token: TokenSnapshot, now: datetime) -> str | None:
    """Why a token cannot be used right now, or None when it is valid."""
    if token.status != ClaimTokenStatus.PENDING:
        return f"status_{token.status.value}"
    if now >= token.expires_at:
        return "expired"
    if token.used_count >= token.max_uses:
        return "exhausted"
    return None


def is_valid(token: TokenSnapshot, now: datetime) -> bool:
    return invalid_reason(token, now) is None


def ensure_valid(token: TokenSnapshot, now: datetime) -> None:
    reason = invalid_reason(token, now)
    if reason is not None:
        raise TokenInvalid(reason)


def normalize_email(email: str) -> str:
    return email.strip().casefold()


def emails_match(a: str, b: str) -> bool:
    return normalize_email(a) == normalize_email(b)


def ensure_redeemable(token: TokenSnapshot, claimant_email: str, now: datetime) -> None:
    """All checks a redemption must pass before it may consume the token."""
    ensure_valid(token, now)
    if token.require_email_verification and not token.email_verified:
        raise VerificationFailed("email_not_verified")
    if not emails_match(token.assigned_email, claimant_email):
        raise TokenInvalid("email_mismatch")


def ensure_code_checkable(token: TokenSnapshot, now: datetime) -> None:
    ensure_valid(token, now)
    if not token.require_email_verification:
        raise VerificationFailed("verification_not_required")
    if token.verification_code_hash is None or token.verification_code_expires_at is None:
        raise VerificationFailed("no_code_issued")
    if now >= token.verification_code_expires_at:
        raise VerificationFailed("code_expired")


def is_verification_locked(failed_attempts: int, max_failed_attempts: int) -> bool:
    return failed_attempts >= max_failed_attempts


def resolve_expiry_days(days: int | None, default: int, maximum: int) -> int:
    if days is None:
        return default
    if days < 1 or days > maximum:
        raise InvalidRequest(f"expires_in_days must be between 1 and {maximum}")
    return days
