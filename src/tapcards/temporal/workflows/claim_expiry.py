"""
Claim Token Expiry Workflow.

Designed to be run on a schedule via Temporal cron (CLAIM_EXPIRY_SCHEDULE).
"""

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from src.tapcards.temporal.activities import expire_claim_tokens

WORKFLOW_ID = "claim-token-expiry"


@workflow.defn
class ClaimTokenExpiryWorkflow:
    """Sweep lapsed pending claim tokens to `expired`."""

    @workflow.run
    async def run(self) -> dict[str, int]:
        workflow.logger.info("Starting claim token expiry sweep")

        expired = await workflow.execute_activity(
            expire_claim_tokens,
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=RetryPolicy(
                maximum_attempts=3,
                initial_interval=timedelta(seconds=2),
            ),
        )

        workflow.logger.info(f"Claim token expiry sweep complete: {expired} expired")
        return {"expired": expired}
