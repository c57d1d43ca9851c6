from src.tapcards.services.audit_service import AuditService
from src.tapcards.services.card_registry import CardRegistry, CardTemplate
from src.tapcards.services.claim_token_service import Assignee, ClaimTokenService, ProfileData
from src.tapcards.services.engine import Invitation, ProvisioningEngine
from src.tapcards.services.quota_ledger import QuotaLedger

__all__ = [
    "Assignee",
    "AuditService",
    "CardRegistry",
    "CardTemplate",
    "ClaimTokenService",
    "Invitation",
    "ProfileData",
    "ProvisioningEngine",
    "QuotaLedger",
]
