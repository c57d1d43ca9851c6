"""Claim token schemas for API request/response."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class ClaimGenerate(BaseModel):
    """Schema for issuing a claim invitation for one card."""

    card_id: UUID
    email: EmailStr
    name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=32)
    details: dict[str, Any] | None = None
    expires_in_days: int | None = Field(default=None, ge=1, le=90)
    require_email_verification: bool = True

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class ClaimBulkGenerate(BaseModel):
    invitations: list[ClaimGenerate] = Field(min_length=1, max_length=100)


class ClaimGenerateResponse(BaseModel):
    """Issued token. `claim_url` carries the only copy of the plaintext token."""

    id: UUID
    card_id: UUID | None
    assigned_email: str
    expires_at: datetime
    claim_url: str


class ClaimBulkItem(BaseModel):
    card_id: UUID
    success: bool
    token: ClaimGenerateResponse | None = None
    error: str | None = None
    code: str | None = None


class ClaimBulkGenerateResponse(BaseModel):
    results: list[ClaimBulkItem]
    succeeded: int
    failed: int


class ClaimTokenRead(BaseModel):
    """Administrator view of a claim token. Never includes the token or its hash."""

    id: UUID
    card_id: UUID | None
    assigned_email: str
    assigned_name: str | None
    assigned_phone: str | None
    status: str
    expires_at: datetime
    used_count: int
    max_uses: int
    require_email_verification: bool
    email_verified: bool
    claimed_by_user_id: UUID | None
    claimed_at: datetime | None
    revoked_at: datetime | None
    revocation_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ClaimInfoRead(BaseModel):
    """Public view of a valid token, shown on the claim page."""

    tenant_name: str
    card_uid: str | None
    card_status: str | None
    assigned_name: str | None
    assigned_email: str
    require_email_verification: bool
    email_verified: bool
    expires_at: datetime

    model_config = {"from_attributes": True}


class VerifyCodeRequest(BaseModel):
    code: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")


class VerificationStatus(BaseModel):
    email_verified: bool
    message: str


class ProfileCreate(BaseModel):
    username: str = Field(min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
    display_name: str = Field(min_length=1, max_length=100)
    title: str | None = Field(default=None, max_length=100)

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Display name cannot be empty or whitespace only")
        return v


class ClaimRedeem(BaseModel):
    profile: ProfileCreate | None = None


class ClaimRedeemResponse(BaseModel):
    card_id: UUID
    card_uid: str
    status: str
    membership_created: bool
    profile_id: UUID | None


class ClaimRevoke(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
