"""
Temporal Worker - Separate process from API.

Run with:
    python -m src.tapcards.temporal.worker
"""

import asyncio
from collections.abc import Sequence

import uvicorn
from fastapi import FastAPI
from temporalio.client import Client
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.worker import Worker

from src.tapcards.core.config import get_settings
from src.tapcards.core.db import dispose_engine
from src.tapcards.core.logging import get_logger, setup_logging
from src.tapcards.temporal.activities import expire_claim_tokens
from src.tapcards.temporal.client import get_temporal_client
from src.tapcards.temporal.workflows import WORKFLOW_ID, ClaimTokenExpiryWorkflow

logger = get_logger(__name__)

WORKER_HEALTH_PORT = 8001


async def create_worker(
    client: Client,
    task_queue: str,
    workflows: Sequence[type],
    activities: Sequence[object],  # type: ignore[type-arg]
    *,
    max_concurrent_activities: int = 50,
    max_concurrent_workflow_tasks: int = 50,
) -> Worker:
    """Create a worker with tuned settings."""
    return Worker(
        client,
        task_queue=task_queue,
        workflows=list(workflows),
        activities=list(activities),  # type: ignore[arg-type]
        max_concurrent_activities=max_concurrent_activities,
        max_concurrent_workflow_tasks=max_concurrent_workflow_tasks,
    )


async def schedule_expiry_sweep(client: Client, task_queue: str, schedule: str) -> None:
    """Start the cron expiry workflow unless it is already running."""
    try:
        await client.start_workflow(
            ClaimTokenExpiryWorkflow.run,
            id=WORKFLOW_ID,
            task_queue=task_queue,
            cron_schedule=schedule,
        )
        logger.info("Claim expiry sweep scheduled", schedule=schedule)
    except WorkflowAlreadyStartedError:
        logger.info("Claim expiry sweep already scheduled", workflow_id=WORKFLOW_ID)


async def run_health_server(task_queue: str, port: int = WORKER_HEALTH_PORT) -> None:
    """Run a lightweight health server for K8s probes."""
    health_app = FastAPI(title="Temporal Worker Health")

    @health_app.get("/health")
    async def health() -> dict[str, str]:
        return {
            "status": "healthy",
            "service": "temporal-worker",
            "task_queue": task_queue,
        }

    @health_app.get("/ready")
    async def ready() -> dict[str, str]:
        return {"status": "ready"}

    config = uvicorn.Config(
        health_app,
        host="0.0.0.0",
        port=port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    logger.info(f"Starting health server on port {port}")
    await server.serve()


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.debug)

    client = await get_temporal_client()
    task_queue = settings.temporal_task_queue

    worker = await create_worker(
        client,
        task_queue,
        workflows=[ClaimTokenExpiryWorkflow],
        activities=[expire_claim_tokens],
    )

    if settings.claim_expiry_schedule:
        await schedule_expiry_sweep(client, task_queue, settings.claim_expiry_schedule)

    logger.info(f"Starting jobs worker on queue: {task_queue}")
    try:
        health_task = asyncio.create_task(run_health_server(task_queue))
        await worker.run()
        await health_task
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
