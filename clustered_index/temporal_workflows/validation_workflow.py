"""
Temporal workflow and activity for durable index validation.

Validation fetches and checks every vector of every cluster, which for a
large index is long enough to want retries and a worker that survives
restarts.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional
from temporalio import workflow, activity

# Services pull in numpy/httpx; import them only inside the activity


@dataclass
class ValidationRequest:
    """Input for the validation workflow."""
    manifest_url: str
    tolerance: Optional[float] = None
    expected_model_id: Optional[str] = None
    expected_dimensions: Optional[int] = None


@dataclass
class ValidationResponse:
    """Output from the validation workflow."""
    manifest_url: str
    passed: bool
    errors: List[str] = field(default_factory=list)
    clusters_checked: int = 0
    vectors_checked: int = 0


@activity.defn(name="validate_index")
async def validate_index_activity(request: ValidationRequest) -> ValidationResponse:
    """
    Activity: run the full validator against `request.manifest_url`.
    A failed validation is a normal result, not an activity failure.
    """
    import logging
    logger = logging.getLogger(__name__)
    logger.info(f"🔍 Validate activity: {request.manifest_url}")

    from clustered_index.services.validator import IndexValidator

    validator = IndexValidator(
        tolerance=request.tolerance,
        expected_model_id=request.expected_model_id,
        expected_dimensions=request.expected_dimensions,
    )
    report = await validator.validate(request.manifest_url)
    logger.info(f"✓ Validate activity finished: passed={report.passed}, errors={len(report.errors)}")
    return ValidationResponse(**report.model_dump())


@workflow.defn(name="ValidateIndexWorkflow")
class ValidateIndexWorkflow:
    """Durable wrapper around one validation run."""

    def __init__(self) -> None:
        self._status = "pending"

    @workflow.run
    async def run(self, request: ValidationRequest) -> ValidationResponse:
        self._status = "validating"
        result = await workflow.execute_activity(
            validate_index_activity,
            request,
            start_to_close_timeout=timedelta(minutes=10),
        )
        self._status = "passed" if result.passed else "failed"
        return result

    @workflow.query(name="get_status")
    def get_status(self) -> str:
        return self._status
