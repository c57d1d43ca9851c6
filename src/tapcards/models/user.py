"""User shadow records and tenant memberships.

Users are created by the identity service; the engine only reads them and
creates memberships when a claim admits a user into a tenant.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.tapcards.models.base import utc_now
from src.tapcards.models.enums import MembershipRole


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    full_name: str = Field(default="", max_length=100)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)


class UserTenantMembership(SQLModel, table=True):
    """Junction table for user-tenant membership."""

    __tablename__ = "user_tenant_membership"

    user_id: UUID = Field(foreign_key="users.id", primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenants.id", primary_key=True)
    role: str = Field(default=MembershipRole.MEMBER.value, max_length=50)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
