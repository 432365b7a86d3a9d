"""
Temporal workflows package.
"""

from .validation_workflow import (
    ValidateIndexWorkflow,
    ValidationRequest,
    ValidationResponse,
    validate_index_activity,
)
from .client import TemporalValidationClient, TASK_QUEUE

__all__ = [
    "ValidateIndexWorkflow",
    "ValidationRequest",
    "ValidationResponse",
    "validate_index_activity",
    "TemporalValidationClient",
    "TASK_QUEUE",
]
