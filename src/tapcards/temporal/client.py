"""Shared Temporal client for the health probe and the expiry worker."""

import asyncio

from temporalio.client import Client

from src.tapcards.core.config import get_settings
from src.tapcards.core.logging import get_logger

logger = get_logger(__name__)

_client: Client | None = None
_connect_lock = asyncio.Lock()


async def get_temporal_client() -> Client:
    """Connect once to the configured namespace and reuse the client."""
    global _client
    if _client is not None:
        return _client
    async with _connect_lock:
        if _client is None:
            settings = get_settings()
            _client = await Client.connect(
                settings.temporal_host,
                namespace=settings.temporal_namespace,
            )
            logger.info(
                "Connected to Temporal",
                host=settings.temporal_host,
                namespace=settings.temporal_namespace,
            )
    return _client


async def close_temporal_client() -> None:
    """Drop the shared client. Call during shutdown.

    The SDK has no explicit close; the connection goes with the last reference.
    """
    global _client
    if _client is not None:
        logger.info("Releasing Temporal client")
        _client = None
