"""In-flight request accounting so shutdown can drain before closing pools."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from src.tapcards.core.logging import get_logger

logger = get_logger(__name__)


class RequestTracker:
    def __init__(self) -> None:
        self._in_flight = 0
        self._draining = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_shutting_down(self) -> bool:
        return self._draining

    @property
    def in_flight_count(self) -> int:
        return self._in_flight

    @asynccontextmanager
    async def track_request(self) -> AsyncGenerator[None]:
        # Single event loop: the counter needs no lock between awaits
        self._in_flight += 1
        self._idle.clear()
        try:
            yield
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def drain(self, timeout: float) -> bool:
        """Stop admitting new work and wait for in-flight requests.

        Returns False if requests were still running when ``timeout`` elapsed.
        """
        self._draining = True
        if self._in_flight:
            logger.info("Draining in-flight requests", in_flight=self._in_flight)
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Shutdown grace period elapsed",
                timeout=timeout,
                in_flight=self._in_flight,
            )
            return False
        return True


request_tracker = RequestTracker()
