"""Claim token expiry activity."""

from temporalio import activity

from src.tapcards.core.db import get_session


@activity.defn
async def expire_claim_tokens() -> int:
    """
    Flip pending claim tokens whose expiry has passed to `expired`.

    Advisory only: token validity is always evaluated against request time,
    so a late or skipped sweep never lets an expired token through.

    Idempotent: the UPDATE only matches tokens that are still pending, so a
    second run finds nothing to change.

    Returns:
        Number of tokens expired
    """
    from src.tapcards.services.engine import ProvisioningEngine

    async with get_session() as session:
        count = await ProvisioningEngine(session).expire_claim_tokens()

    activity.logger.info(f"Expired {count} stale claim tokens")
    return count
