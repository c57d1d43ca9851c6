"""Repository layer - data access abstraction."""

from src.tapcards.repositories.audit import AuditFilters, AuditLogRepository
from src.tapcards.repositories.base import BaseRepository
from src.tapcards.repositories.card import CardAssignmentRepository, CardFilters, CardRepository
from src.tapcards.repositories.claim import ClaimAttemptRepository, ClaimTokenRepository
from src.tapcards.repositories.tenant import TenantQuotaRepository, TenantRepository
from src.tapcards.repositories.user import MembershipRepository, ProfileRepository, UserRepository

__all__ = [
    "AuditFilters",
    "AuditLogRepository",
    "BaseRepository",
    "CardAssignmentRepository",
    "CardFilters",
    "CardRepository",
    "ClaimAttemptRepository",
    "ClaimTokenRepository",
    "MembershipRepository",
    "ProfileRepository",
    "TenantQuotaRepository",
    "TenantRepository",
    "UserRepository",
]
