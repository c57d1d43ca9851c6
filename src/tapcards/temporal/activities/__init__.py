"""Temporal Activities - Re-exports for worker registration."""

from src.tapcards.temporal.activities.expiry import expire_claim_tokens

__all__ = ["expire_claim_tokens"]
