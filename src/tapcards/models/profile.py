from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.tapcards.models.base import utc_now
from src.tapcards.models.enums import ProfileStatus


class Profile(SQLModel, table=True):
    """Digital profile a card redirects to.

    Only the fields the claim flow writes live here; profile editing is
    owned by the profile service.
    """

    __tablename__ = "profiles"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenants.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    username: str = Field(max_length=64, unique=True, index=True)
    display_name: str = Field(max_length=100)
    title: str | None = Field(default=None, max_length=100)
    status: str = Field(default=ProfileStatus.DRAFT.value, max_length=20)
    created_at: datetime = Field(default_factory=utc_now)
