"""Card schemas for API request/response."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

CARD_ID_PLACEHOLDER = "{card_id}"


def _strip_or_none(v: str | None) -> str | None:
    if v is not None:
        v = v.strip()
        if not v:
            return None
    return v


class CardTemplateFields(BaseModel):
    sku: str | None = Field(default=None, max_length=64)
    batch_number: str | None = Field(default=None, max_length=64)
    product_line: str | None = Field(default=None, max_length=64)
    physical: dict[str, Any] | None = None

    @field_validator("sku", "batch_number", "product_line")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class CardCreate(CardTemplateFields):
    """Schema for creating a single card."""

    serial_number: str | None = Field(default=None, max_length=64)
    ndef_url: str | None = Field(default=None, max_length=500)

    @field_validator("serial_number")
    @classmethod
    def strip_serial(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class CardBulkCreate(CardTemplateFields):
    """Schema for minting a batch of cards from one template."""

    count: int = Field(ge=1, le=1000)
    ndef_url_template: str | None = Field(
        default=None,
        max_length=500,
        description="URL written to each card; '{card_id}' is replaced by the card's id.",
    )

    @field_validator("ndef_url_template")
    @classmethod
    def validate_template(cls, v: str | None) -> str | None:
        v = _strip_or_none(v)
        if v is not None and CARD_ID_PLACEHOLDER not in v:
            raise ValueError(f"ndef_url_template must contain {CARD_ID_PLACEHOLDER}")
        return v


class CardBulkCreateResponse(BaseModel):
    count: int
    batch_number: str | None
    preview: list[str]


class CardUpdate(BaseModel):
    """Schema for editing card metadata. Only fields that are sent are changed."""

    serial_number: str | None = Field(default=None, max_length=64)
    sku: str | None = Field(default=None, max_length=64)
    batch_number: str | None = Field(default=None, max_length=64)
    product_line: str | None = Field(default=None, max_length=64)
    physical: dict[str, Any] | None = None
    ndef_url: str | None = Field(default=None, max_length=500)


class CardAssign(BaseModel):
    user_id: UUID
    profile_id: UUID | None = None
    reason: str | None = Field(default=None, max_length=500)


class CardReason(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CardRead(BaseModel):
    """Schema for reading a card."""

    id: UUID
    card_uid: str
    tenant_id: UUID
    serial_number: str | None
    sku: str | None
    batch_number: str | None
    product_line: str | None
    physical: dict[str, Any] | None
    ndef_url: str | None
    status: str
    lifecycle_stage: str
    assigned_to_user_id: UUID | None
    assigned_profile_id: UUID | None
    claim_token_id: UUID | None
    tap_count: int
    view_count: int
    last_tapped_at: datetime | None
    created_at: datetime
    updated_at: datetime
    activated_at: datetime | None

    model_config = {"from_attributes": True}


class CardStatsRead(BaseModel):
    total: int
    by_status: dict[str, int]
    by_lifecycle_stage: dict[str, int]
    total_taps: int
    total_views: int

    model_config = {"from_attributes": True}


class CardAssignmentRead(BaseModel):
    id: UUID
    card_id: UUID
    action: str
    user_id: UUID | None
    profile_id: UUID | None
    previous_user_id: UUID | None
    actor_user_id: UUID | None
    reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TapResponse(BaseModel):
    """Public tap/lookup result. `redirect_url` is null unless the card is active."""

    card_uid: str
    status: str
    redirect_url: str | None
