"""Bounded claim-attempt history, written outside the claim transaction."""

import contextlib
from uuid import UUID

from src.tapcards.core.audit_context import get_audit_context
from src.tapcards.core.config import get_settings
from src.tapcards.core.db import get_isolated_session
from src.tapcards.core.logging import get_logger
from src.tapcards.models import ClaimAttempt, ClaimAttemptKind
from src.tapcards.repositories import ClaimAttemptRepository

logger = get_logger(__name__)


class ClaimAttemptRecorder:
    """Appends attempts and trims each token's history to the newest N.

    Recording happens after the primary transaction has committed or rolled
    back, on its own session, and never raises.
    """

    def __init__(self, history_size: int | None = None):
        self.history_size = history_size or get_settings().claim_attempt_history_size

    async def record(
        self,
        token_id: UUID,
        kind: ClaimAttemptKind,
        success: bool,
        failure_reason: str | None = None,
        email: str | None = None,
    ) -> None:
        ctx = get_audit_context()
        try:
            async with get_isolated_session() as session:
                repo = ClaimAttemptRepository(session)
                try:
                    repo.add(
                        ClaimAttempt(
                            claim_token_id=token_id,
                            kind=kind.value,
                            success=success,
                            failure_reason=failure_reason,
                            email=email,
                            ip_address=ctx.ip_address if ctx else None,
                            user_agent=ctx.user_agent if ctx else None,
                        )
                    )
                    await session.flush()
                    await repo.prune(token_id, self.history_size)
                    await session.commit()
                except Exception:
                    with contextlib.suppress(Exception):
                        await session.rollback()
                    raise
        except Exception as e:
            logger.warning(
                "Failed to record claim attempt",
                claim_token_id=str(token_id),
                kind=kind.value,
                error=str(e),
            )
