"""Claim endpoints.

Administrator routes issue, list and revoke invitations. The claimant routes
take the plaintext token in the path; they are rate limited per client IP and
their responses are never cached.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from src.tapcards.api.dependencies import CurrentActor, EngineDep
from src.tapcards.core.rate_limit import claim_rate_limit, limiter, verify_code_rate_limit
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
    VerificationStatus,
    VerifyCodeRequest,
)
from src.tapcards.schemas.pagination import PaginatedResponse
from src.tapcards.services.claim_token_service import Assignee, IssuedToken, ProfileData
from src.tapcards.services.engine import Invitation

router = APIRouter(prefix="/claim", tags=["claim"])


def _invitation(data: ClaimGenerate) -> Invitation:
    return Invitation(
        card_id=data.card_id,
        assignee=Assignee(
            email=data.email,
            name=data.name,
            phone=data.phone,
            details=data.details,
        ),
        expires_in_days=data.expires_in_days,
        require_email_verification=data.require_email_verification,
    )


def _issued_response(issued: IssuedToken) -> ClaimGenerateResponse:
    return ClaimGenerateResponse(
        id=issued.token.id,
        card_id=issued.token.card_id,
        assigned_email=issued.token.assigned_email,
        expires_at=issued.token.expires_at,
        claim_url=issued.claim_url,
    )


@router.post(
    "/generate",
    response_model=ClaimGenerateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a claim invitation",
    responses={
        201: {"description": "Token issued; the claim URL is only returned here"},
        409: {"description": "Card is not claimable"},
    },
)
async def generate_claim(
    data: ClaimGenerate, actor: CurrentActor, engine: EngineDep
) -> ClaimGenerateResponse:
    return _issued_response(await engine.generate_claim(actor, _invitation(data)))


@router.post(
    "/bulk-generate",
    response_model=ClaimBulkGenerateResponse,
    summary="Issue up to 100 claim invitations",
)
async def bulk_generate_claims(
    data: ClaimBulkGenerate, actor: CurrentActor, engine: EngineDep
) -> ClaimBulkGenerateResponse:
    """Each invitation succeeds or fails on its own."""
    outcomes = await engine.bulk_generate_claims(
        actor, [_invitation(item) for item in data.invitations]
    )
    results = [
        ClaimBulkItem(
            card_id=outcome.card_id,
            success=outcome.success,
            token=_issued_response(outcome.issued) if outcome.issued else None,
            error=outcome.error.message if outcome.error else None,
            code=outcome.error.code if outcome.error else None,
        )
        for outcome in outcomes
    ]
    succeeded = sum(1 for r in results if r.success)
    return ClaimBulkGenerateResponse(
        results=results, succeeded=succeeded, failed=len(results) - succeeded
    )


@router.get("", response_model=PaginatedResponse[ClaimTokenRead], summary="List claim tokens")
async def list_claim_tokens(
    actor: CurrentActor,
    engine: EngineDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> PaginatedResponse[ClaimTokenRead]:
    tokens, next_cursor, has_more = await engine.list_claim_tokens(
        actor, status_filter, search, cursor, limit
    )
    return PaginatedResponse(
        items=[ClaimTokenRead.model_validate(t) for t in tokens],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post(
    "/tokens/{token_id}/revoke",
    response_model=ClaimTokenRead,
    summary="Revoke a pending claim token",
    responses={400: {"description": "Token is not pending"}, 404: {"description": "Not found"}},
)
async def revoke_claim(
    token_id: UUID,
    actor: CurrentActor,
    engine: EngineDep,
    data: ClaimRevoke | None = None,
) -> ClaimTokenRead:
    token = await engine.revoke_claim(actor, token_id, data.reason if data else None)
    return ClaimTokenRead.model_validate(token)


@router.get(
    "/{token}",
    response_model=ClaimInfoRead,
    summary="Claim page details",
    responses={400: {"description": "Invalid or expired claim token"}},
)
@limiter.limit(claim_rate_limit)
async def claim_info(request: Request, token: str, engine: EngineDep) -> ClaimInfoRead:
    return ClaimInfoRead.model_validate(await engine.claim_info(token))


@router.post(
    "/{token}/verify-email",
    response_model=VerificationStatus,
    summary="Email a verification code to the invited address",
)
@limiter.limit(verify_code_rate_limit)
async def send_verification_code(
    request: Request, token: str, engine: EngineDep
) -> VerificationStatus:
    claim_token = await engine.send_verification_code(token)
    return VerificationStatus(
        email_verified=claim_token.email_verified,
        message="Verification code sent",
    )


@router.post(
    "/{token}/verify-code",
    response_model=VerificationStatus,
    summary="Submit the emailed verification code",
)
@limiter.limit(verify_code_rate_limit)
async def verify_code(
    request: Request, token: str, data: VerifyCodeRequest, engine: EngineDep
) -> VerificationStatus:
    claim_token = await engine.verify_code(token, data.code)
    return VerificationStatus(email_verified=claim_token.email_verified, message="Email verified")


@router.post(
    "/{token}/claim",
    response_model=ClaimRedeemResponse,
    summary="Claim the card as the signed-in user",
    responses={
        400: {"description": "Invalid token, unverified or mismatched email"},
        403: {"description": "Organization limit reached"},
    },
)
@limiter.limit(claim_rate_limit)
async def redeem_claim(
    request: Request,
    token: str,
    actor: CurrentActor,
    engine: EngineDep,
    data: ClaimRedeem | None = None,
) -> ClaimRedeemResponse:
    profile = None
    if data and data.profile:
        profile = ProfileData(
            username=data.profile.username,
            display_name=data.profile.display_name,
            title=data.profile.title,
        )
    redemption = await engine.redeem(actor, token, profile)
    return ClaimRedeemResponse(
        card_id=redemption.card.id,
        card_uid=redemption.card.card_uid,
        status=redemption.card.status,
        membership_created=redemption.membership_created,
        profile_id=redemption.profile.id if redemption.profile else None,
    )
