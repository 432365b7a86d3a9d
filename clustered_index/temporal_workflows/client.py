"""
Temporal client for starting validation workflows.
"""

from dataclasses import asdict
from typing import Optional
from uuid import uuid4

from temporalio.client import Client

from clustered_index.core.config import settings
from clustered_index.temporal_workflows.validation_workflow import ValidationRequest, ValidationResponse


TASK_QUEUE = "clustered-index-validation-queue"


class TemporalValidationClient:
    """
    Client for running index validation via Temporal workflows.
    """

    def __init__(self, temporal_url: str | None = None):
        # TEMPORAL_ADDRESS=temporal:7233 when running in Docker
        self.temporal_url = temporal_url or settings.TEMPORAL_ADDRESS
        self._client: Optional[Client] = None

    async def connect(self):
        """Connect to Temporal server."""
        if not self._client:
            self._client = await Client.connect(self.temporal_url)

    async def execute_validation(self, request: ValidationRequest) -> dict:
        """
        Start a ValidateIndexWorkflow and wait for its report.
        """
        await self.connect()

        handle = await self._client.start_workflow(
            "ValidateIndexWorkflow",
            request,
            id=f"validate-index-{uuid4()}",
            task_queue=TASK_QUEUE,
            result_type=ValidationResponse,
        )
        result = await handle.result()
        return asdict(result)

    async def get_workflow_status(self, workflow_id: str) -> str:
        await self.connect()
        handle = self._client.get_workflow_handle(workflow_id)
        return await handle.query("get_status")
