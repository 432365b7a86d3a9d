"""
Temporal worker for executing validation workflows and activities.
"""

import asyncio
import logging
from temporalio.client import Client
from temporalio.worker import Worker

from clustered_index.core.config import settings
from clustered_index.temporal_workflows.client import TASK_QUEUE
from clustered_index.temporal_workflows.validation_workflow import (
    ValidateIndexWorkflow,
    validate_index_activity,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """
    Start the Temporal worker.
    """
    logger.info(f"Connecting to Temporal server at {settings.TEMPORAL_ADDRESS}...")
    client = await Client.connect(settings.TEMPORAL_ADDRESS)
    logger.info("✓ Connected to Temporal server")

    worker = Worker(
        client,
        task_queue=TASK_QUEUE,
        workflows=[ValidateIndexWorkflow],
        activities=[validate_index_activity],
    )

    logger.info(f"Starting worker on task queue: {TASK_QUEUE}")
    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
