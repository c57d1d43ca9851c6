"""Email client using Resend API."""

import html
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import datetime
from typing import Any

import resend

from src.tapcards.core.config import get_settings
from src.tapcards.core.logging import get_logger, loggable_email

logger = get_logger(__name__)

# Thread pool for email sending with timeout support
_email_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="email_sender")

_BODY_STYLE = (
    "font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; "
    "line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;"
)
_BUTTON_STYLE = (
    "background-color: #2563eb; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block; font-weight: 500;"
)
_LINK_STYLE = "color: #2563eb; word-break: break-all;"
_CODE_STYLE = "font-size: 32px; letter-spacing: 8px; font-weight: 600; margin: 24px 0;"
_MUTED_STYLE = "color: #666; font-size: 14px;"


def _deliver(to: str, subject: str, body: str, email_type: str) -> bool:
    """Send one message through Resend, bounded by the configured timeout.

    Without an API key the message is not sent and only its envelope is
    logged. Returns False on any delivery error; callers never abort on it.
    """
    settings = get_settings()

    if not settings.resend_api_key:
        logger.warning(
            "RESEND_API_KEY not set - email not sent",
            to=loggable_email(to),
            email_type=email_type,
        )
        return True

    resend.api_key = settings.resend_api_key
    params: dict[str, Any] = {
        "from": settings.email_from,
        "to": [to],
        "subject": subject,
        "html": body,
    }

    try:
        future = _email_executor.submit(resend.Emails.send, params)  # type: ignore[arg-type]
        future.result(timeout=settings.email_send_timeout_seconds)
        logger.info("Email sent", to=loggable_email(to), email_type=email_type)
        return True
    except FuturesTimeoutError:
        logger.error(
            "Email send timed out",
            to=loggable_email(to),
            email_type=email_type,
            timeout=settings.email_send_timeout_seconds,
        )
        return False
    except Exception as e:
        logger.error(
            "Failed to send email",
            to=loggable_email(to),
            email_type=email_type,
            error=str(e),
        )
        return False


def send_claim_invitation_email(
    to: str,
    claim_url: str,
    tenant_name: str,
    assignee_name: str | None,
    expires_at: datetime,
) -> bool:
    """Send the claim link for a provisioned card.

    Args:
        to: Recipient email address (the token's assigned email)
        claim_url: Claim URL containing the plaintext token
        tenant_name: Organization issuing the card
        assignee_name: Recipient name for personalization
        expires_at: Token expiry (naive UTC)

    Returns:
        True if email was sent (or logged in dev mode), False on error
    """
    return _deliver(
        to,
        f"Your {tenant_name} card is ready to claim",
        _get_claim_invitation_html(claim_url, tenant_name, assignee_name, expires_at),
        "claim_invitation",
    )


def send_verification_code_email(to: str, code: str, tenant_name: str) -> bool:
    """Send the 6-digit verification code for a claim."""
    settings = get_settings()
    return _deliver(
        to,
        "Your card claim verification code",
        _get_verification_code_html(code, tenant_name, settings.verification_code_expire_minutes),
        "claim_verification_code",
    )


def _get_claim_invitation_html(
    claim_url: str, tenant_name: str, assignee_name: str | None, expires_at: datetime
) -> str:
    safe_name = html.escape(assignee_name or "there")
    safe_tenant = html.escape(tenant_name)
    safe_url = html.escape(claim_url)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="{_BODY_STYLE}">
    <h1 style="color: #2563eb; margin-bottom: 24px;">Claim your card</h1>
    <p>Hi {safe_name},</p>
    <p><strong>{safe_tenant}</strong> has set up a tap card for you.</p>
    <p style="margin: 32px 0;">
        <a href="{safe_url}" style="{_BUTTON_STYLE}">Claim card</a>
    </p>
    <p style="{_MUTED_STYLE}">Or copy this link into your browser:</p>
    <p><a href="{safe_url}" style="{_LINK_STYLE}">{safe_url}</a></p>
    <p style="{_MUTED_STYLE}">This link expires on {expires_at:%Y-%m-%d %H:%M} UTC.</p>
</body>
</html>"""


def _get_verification_code_html(code: str, tenant_name: str, expire_minutes: int) -> str:
    safe_tenant = html.escape(tenant_name)
    safe_code = html.escape(code)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="{_BODY_STYLE}">
    <h1 style="color: #2563eb; margin-bottom: 24px;">Verify your email</h1>
    <p>Use this code to finish claiming your {safe_tenant} card:</p>
    <p style="{_CODE_STYLE}">{safe_code}</p>
    <p style="{_MUTED_STYLE}">The code expires in {expire_minutes} minutes.
    If you did not request it, you can ignore this email.</p>
</body>
</html>"""
