"""Temporal Workflows - Re-exports for worker registration."""

from src.tapcards.temporal.workflows.claim_expiry import WORKFLOW_ID, ClaimTokenExpiryWorkflow

__all__ = ["WORKFLOW_ID", "ClaimTokenExpiryWorkflow"]
