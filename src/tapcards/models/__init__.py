"""Model exports.

Import from here: `from src.tapcards.models import Card, ClaimToken`
"""

from src.tapcards.models.audit import AuditAction, AuditLog, AuditSeverity, AuditStatus
from src.tapcards.models.card import Card, CardAssignment
from src.tapcards.models.claim import ClaimAttempt, ClaimToken
from src.tapcards.models.enums import (
    AssignmentAction,
    CardStatus,
    ClaimAttemptKind,
    ClaimTokenStatus,
    LifecycleStage,
    MembershipRole,
    ProfileStatus,
    QuotaResource,
    TenantStatus,
)
from src.tapcards.models.profile import Profile
from src.tapcards.models.tenant import UNBOUNDED, Tenant, TenantQuota
from src.tapcards.models.user import User, UserTenantMembership

__all__ = [
    # Enums
    "AssignmentAction",
    "AuditAction",
    "AuditSeverity",
    "AuditStatus",
    "CardStatus",
    "ClaimAttemptKind",
    "ClaimTokenStatus",
    "LifecycleStage",
    "MembershipRole",
    "ProfileStatus",
    "QuotaResource",
    "TenantStatus",
    # Models
    "AuditLog",
    "Card",
    "CardAssignment",
    "ClaimAttempt",
    "ClaimToken",
    "Profile",
    "Tenant",
    "TenantQuota",
    "User",
    "UserTenantMembership",
    # Constants
    "UNBOUNDED",
]
