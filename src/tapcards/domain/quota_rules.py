"""Quota arithmetic. -1 is the unbounded sentinel and is never compared numerically."""

from src.tapcards.domain.errors import InvalidRequest
from src.tapcards.models.tenant import UNBOUNDED


def ensure_positive(n: int) -> None:
    if n <= 0:
        raise InvalidRequest("Quota amount must be positive")


def fits(limit: int, usage: int, n: int) -> bool:
    if limit == UNBOUNDED:
        return True
    return usage + n <= limit


def saturating_release(usage: int, n: int) -> int:
    return max(usage - n, 0)
