from __future__ import annotations
from typing import Any, Dict
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi import status as http

from clustered_index.services.validator import IndexValidator
from clustered_index.temporal_workflows.client import TemporalValidationClient
from clustered_index.temporal_workflows.validation_workflow import ValidationRequest

router = APIRouter()
temporal_client = TemporalValidationClient()


@router.get("")
async def describe_index(request: Request) -> Dict[str, Any]:
    """Summary of the loaded index plus any clusters that failed to load."""
    index = request.app.state.index
    if index is None:
        raise HTTPException(
            http.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Index not loaded: {request.app.state.load_error}",
        )
    return {
        "manifest_url": request.app.state.manifest_url,
        **index.summary(),
        "load_errors": [f.to_dict() for f in index.load_errors],
    }


@router.post("/validate")
async def validate_index(
    request: Request,
    use_temporal: bool = Query(False, description="Run validation as a Temporal workflow"),
) -> Dict[str, Any]:
    """
    Re-validate the index this server was started with. Always 200;
    the report's `passed` flag carries the verdict.
    """
    url = request.app.state.manifest_url
    if use_temporal:
        result = await temporal_client.execute_validation(ValidationRequest(manifest_url=url))
        return {**result, "durable_execution": True}
    report = await IndexValidator().validate(url)
    return {**report.model_dump(), "durable_execution": False}
