"""Human-readable card identifiers."""

import secrets
import string
from collections.abc import Awaitable, Callable, Collection

from src.tapcards.core.logging import get_logger
from src.tapcards.domain.errors import GenerationExhausted

logger = get_logger(__name__)

CARD_ID_ALPHABET = string.ascii_uppercase + string.digits

# Returns the subset of candidates already present in the registry
TakenLookup = Callable[[Collection[str]], Awaitable[set[str]]]


def random_card_uid(length: int = 8) -> str:
    return "".join(secrets.choice(CARD_ID_ALPHABET) for _ in range(length))


class CardIdGenerator:
    """Draws collision-checked identifiers in batches.

    Each round draws one candidate per unfilled slot, drops duplicates within
    the batch, and asks the registry which of the rest are taken. A slot that
    has not been filled after `max_attempts` rounds exhausts the generator.
    """

    def __init__(
        self,
        length: int = 8,
        max_attempts: int = 10,
        draw: Callable[[], str] | None = None,
    ):
        self.length = length
        self.max_attempts = max_attempts
        self._draw = draw or (lambda: random_card_uid(self.length))

    async def generate(self, count: int, taken: TakenLookup) -> list[str]:
        accepted: list[str] = []
        claimed: set[str] = set()
        collisions = 0

        for _ in range(self.max_attempts):
            remaining = count - len(accepted)
            if remaining == 0:
                break

            candidates: dict[str, None] = {}
            for _ in range(remaining):
                candidate = self._draw()
                if candidate in claimed or candidate in candidates:
                    collisions += 1
                    continue
                candidates[candidate] = None

            existing = await taken(candidates.keys()) if candidates else set()
            collisions += len(existing)
            for candidate in candidates:
                if candidate not in existing:
                    accepted.append(candidate)
                    claimed.add(candidate)

        if len(accepted) < count:
            logger.error(
                "Card identifier generation exhausted",
                requested=count,
                generated=len(accepted),
                max_attempts=self.max_attempts,
            )
            raise GenerationExhausted(self.max_attempts)

        if collisions:
            logger.info("Card identifier collisions retried", collisions=collisions, count=count)
        return accepted
