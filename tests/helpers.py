"""Test helper functions for common data creation patterns."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.tapcards.core.security import create_access_token
from src.tapcards.domain.actor import Actor
from src.tapcards.models import (
    MembershipRole,
    Profile,
    QuotaResource,
    Tenant,
    User,
    UserTenantMembership,
)
from src.tapcards.repositories import TenantQuotaRepository
from src.tapcards.services.quota_ledger import QuotaLedger
from tests.factories import (
    ProfileFactory,
    TenantFactory,
    UserFactory,
    UserTenantMembershipFactory,
)


async def create_tenant(
    session: AsyncSession,
    limits: dict[QuotaResource, int] | None = None,
    **tenant_kwargs,
) -> Tenant:
    """Create a tenant together with its quota ledger rows and commit.

    Args:
        session: Database session
        limits: Overrides for the default quota limits
        **tenant_kwargs: Additional args passed to TenantFactory
    """
    tenant = TenantFactory.build(**tenant_kwargs)
    session.add(tenant)
    await session.flush()
    QuotaLedger(TenantQuotaRepository(session)).provision(tenant.id, limits)
    await session.commit()
    return tenant


async def create_user(session: AsyncSession, **user_kwargs) -> User:
    """Create a user without any membership."""
    user = UserFactory.build(**user_kwargs)
    session.add(user)
    await session.commit()
    return user


async def create_user_with_membership(
    session: AsyncSession,
    tenant: Tenant,
    role: MembershipRole = MembershipRole.ADMIN,
    **user_kwargs,
) -> tuple[User, UserTenantMembership]:
    """Create a user and their membership in a tenant.

    Memberships created here do not consume the tenant's user quota.

    Returns:
        Tuple of (user, membership)
    """
    user = UserFactory.build(**user_kwargs)
    session.add(user)
    await session.flush()

    membership = UserTenantMembershipFactory.build(
        user_id=user.id,
        tenant_id=tenant.id,
        role=role.value,
    )
    session.add(membership)
    await session.commit()
    return user, membership


async def create_profile(
    session: AsyncSession, tenant: Tenant, user: User, **profile_kwargs
) -> Profile:
    profile = ProfileFactory.build(tenant_id=tenant.id, user_id=user.id, **profile_kwargs)
    session.add(profile)
    await session.commit()
    return profile


def actor_for(user: User, tenant: Tenant) -> Actor:
    return Actor(user_id=user.id, tenant_id=tenant.id, email=user.email)


def auth_headers(user: User, tenant: Tenant) -> dict[str, str]:
    """Bearer header carrying an access token for `user` in `tenant`."""
    token = create_access_token(user.id, tenant.id, user.email)
    return {"Authorization": f"Bearer {token}"}
