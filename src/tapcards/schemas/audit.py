"""Audit trail read model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    user_id: UUID | None
    user_email: str | None
    user_role: str | None
    action: str
    entity_type: str
    entity_id: UUID | None
    identifier: str | None
    changes: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    request_id: str | None
    severity: str
    status: str
    error_message: str | None
    created_at: datetime

