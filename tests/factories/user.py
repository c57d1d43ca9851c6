"""User, membership and profile factories for test data generation."""

from polyfactory import Use

from src.tapcards.models import (
    MembershipRole,
    Profile,
    ProfileStatus,
    User,
    UserTenantMembership,
)
from tests.factories.base import BaseFactory, generate_uuid, utc_now


class UserFactory(BaseFactory):
    """Factory for generating User test data."""

    __model__ = User

    id = Use(generate_uuid)
    email = Use(lambda: f"user_{generate_uuid().hex[-8:]}@example.com")
    full_name = "Test User"
    is_active = True
    created_at = Use(utc_now)

    @classmethod
    def inactive(cls, **kwargs):
        """Create a deactivated user."""
        return cls.build(is_active=False, **kwargs)


class UserTenantMembershipFactory(BaseFactory):
    """Factory for generating membership test data."""

    __model__ = UserTenantMembership

    user_id = None  # Required FK - must be set explicitly
    tenant_id = None  # Required FK - must be set explicitly
    role = MembershipRole.MEMBER.value
    is_active = True
    created_at = Use(utc_now)


class ProfileFactory(BaseFactory):
    """Factory for generating Profile test data."""

    __model__ = Profile

    id = Use(generate_uuid)
    tenant_id = None  # Required FK - must be set explicitly
    user_id = None  # Required FK - must be set explicitly
    username = Use(lambda: f"profile_{generate_uuid().hex[-8:]}")
    display_name = "Test Profile"
    title = None
    status = ProfileStatus.DRAFT.value
    created_at = Use(utc_now)
