"""Shared enums for models."""

from enum import Enum


class TenantStatus(str, Enum):
    """Organization subscription status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    TRIAL = "trial"
    EXPIRED = "expired"


class MembershipRole(str, Enum):
    """User role within a tenant."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class QuotaResource(str, Enum):
    """Resource classes metered by the quota ledger."""

    USERS = "users"
    CARDS = "cards"
    PROFILES = "profiles"
    STORAGE = "storage"


class CardStatus(str, Enum):
    """Authoritative card status. Only DEACTIVATED is terminal."""

    INVENTORY = "inventory"
    PROVISIONED = "provisioned"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


class LifecycleStage(str, Enum):
    """Physical lifecycle of a card (telemetry only)."""

    MANUFACTURED = "manufactured"
    ENCODED = "encoded"
    CLAIMED = "claimed"
    RETIRED = "retired"


class AssignmentAction(str, Enum):
    CLAIMED = "claimed"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    REASSIGNED = "reassigned"


class ClaimTokenStatus(str, Enum):
    """Claim token status. Everything except PENDING is terminal."""

    PENDING = "pending"
    CLAIMED = "claimed"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ClaimAttemptKind(str, Enum):
    VERIFY_CODE = "verify_code"
    CLAIM = "claim"


class ProfileStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
