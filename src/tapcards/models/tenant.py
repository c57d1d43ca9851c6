"""Tenant (organization) and quota ledger models."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.tapcards.models.base import utc_now
from src.tapcards.models.enums import TenantStatus

UNBOUNDED = -1


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=100, index=True)
    slug: str = Field(max_length=56, unique=True, index=True)
    status: str = Field(default=TenantStatus.ACTIVE.value, max_length=20)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def status_enum(self) -> TenantStatus:
        return TenantStatus(self.status)


class TenantQuota(SQLModel, table=True):
    """One ledger row per tenant and resource class.

    `quota_limit` of -1 means unbounded. For bounded rows the ledger keeps
    `usage <= quota_limit` at all times; only QuotaLedger writes these rows.
    """

    __tablename__ = "tenant_quotas"

    tenant_id: UUID = Field(foreign_key="tenants.id", primary_key=True)
    resource: str = Field(max_length=20, primary_key=True)
    quota_limit: int = Field(default=UNBOUNDED)
    usage: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_unbounded(self) -> bool:
        return self.quota_limit == UNBOUNDED
