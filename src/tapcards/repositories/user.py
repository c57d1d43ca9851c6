"""Repositories for users, memberships and profiles."""

from uuid import UUID

from sqlalchemy import func
from sqlmodel import select

from src.tapcards.models import MembershipRole, Profile, User, UserTenantMembership
from src.tapcards.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()


class MembershipRepository(BaseRepository[UserTenantMembership]):
    """Repository for user-tenant memberships."""

    model = UserTenantMembership

    async def get_membership(
        self, user_id: UUID, tenant_id: UUID
    ) -> UserTenantMembership | None:
        result = await self.session.execute(
            select(UserTenantMembership).where(
                UserTenantMembership.user_id == user_id,
                UserTenantMembership.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_active_membership(
        self, user_id: UUID, tenant_id: UUID
    ) -> UserTenantMembership | None:
        result = await self.session.execute(
            select(UserTenantMembership).where(
                UserTenantMembership.user_id == user_id,
                UserTenantMembership.tenant_id == tenant_id,
                UserTenantMembership.is_active == True,  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    def create_membership(
        self,
        user_id: UUID,
        tenant_id: UUID,
        role: str = MembershipRole.MEMBER.value,
    ) -> UserTenantMembership:
        """Create a new membership (add to session, no commit)."""
        membership = UserTenantMembership(user_id=user_id, tenant_id=tenant_id, role=role)
        self.session.add(membership)
        return membership


class ProfileRepository(BaseRepository[Profile]):
    model = Profile

    async def username_taken(self, username: str) -> bool:
        result = await self.session.execute(
            select(Profile.id).where(func.lower(Profile.username) == username.lower())
        )
        return result.first() is not None

    async def get_username(self, profile_id: UUID) -> str | None:
        result = await self.session.execute(
            select(Profile.username).where(Profile.id == profile_id)
        )
        return result.scalar_one_or_none()
