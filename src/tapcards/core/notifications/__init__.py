"""Notification delivery."""

from src.tapcards.core.notifications.email import (
    send_claim_invitation_email,
    send_verification_code_email,
)

__all__ = [
    "send_claim_invitation_email",
    "send_verification_code_email",
]
