from src.tapcards.schemas.audit import AuditLogRead
from src.tapcards.schemas.card import (
    CardAssign,
    CardAssignmentRead,
    CardBulkCreate,
    CardBulkCreateResponse,
    CardCreate,
    CardRead,
    CardReason,
    CardStatsRead,
    CardUpdate,
    TapResponse,
)
from src.tapcards.schemas.claim import (
    ClaimBulkGenerate,
    ClaimBulkGenerateResponse,
    ClaimBulkItem,
    ClaimGenerate,
    ClaimGenerateResponse,
    ClaimInfoRead,
    ClaimRedeem,
    ClaimRedeemResponse,
    ClaimRevoke,
    ClaimTokenRead,
    ProfileCreate,
    VerificationStatus,
    VerifyCodeRequest,
)
from src.tapcards.schemas.pagination import PaginatedResponse
from src.tapcards.schemas.quota import QuotaRead, QuotaSnapshot

__all__ = [
    # Audit
    "AuditLogRead",
    # Card
    "CardAssign",
    "CardAssignmentRead",
    "CardBulkCreate",
    "CardBulkCreateResponse",
    "CardCreate",
    "CardRead",
    "CardReason",
    "CardStatsRead",
    "CardUpdate",
    "TapResponse",
    # Claim
    "ClaimBulkGenerate",
    "ClaimBulkGenerateResponse",
    "ClaimBulkItem",
    "ClaimGenerate",
    "ClaimGenerateResponse",
    "ClaimInfoRead",
    "ClaimRedeem",
    "ClaimRedeemResponse",
    "ClaimRevoke",
    "ClaimTokenRead",
    "ProfileCreate",
    "VerificationStatus",
    "VerifyCodeRequest",
    # Pagination
    "PaginatedResponse",
    # Quota
    "QuotaRead",
    "QuotaSnapshot",
]
