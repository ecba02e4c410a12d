"""Evaluation API router: start/stop periodic evaluations and query results."""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query

from ...errors import EvaluationServiceError
from ...evaluation import EvaluationService
from ...messages import (
    EvaluationResultModel,
    ListEvaluationResultsResponse,
    StartEvaluationResponse,
    StopEvaluationResponse,
)
from ..dependencies import bearer_token, get_service
from ..models import ScheduledEvaluation, StartEvaluationBody

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/evaluation", tags=["evaluation"])


def _http_error(action: str, exc: EvaluationServiceError) -> HTTPException:
    if exc.status_code >= 500:
        logger.error("%s failed: %s", action, exc)
    else:
        logger.info("%s rejected: %s", action, exc)
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.post("/evaluate/{target_id}/{catalog_id}/start", response_model=StartEvaluationResponse)
def start_evaluation_endpoint(
    target_id: str = Path(...),
    catalog_id: str = Path(...),
    body: Optional[StartEvaluationBody] = None,
    service: EvaluationService = Depends(get_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Start evaluating a cloud service against a catalog periodically."""
    request = {"target_id": target_id, "catalog_id": catalog_id, "interval": body.interval if body else 0}
    try:
        return service.start_evaluation(request, token=token)
    except EvaluationServiceError as e:
        raise _http_error("Start evaluation", e) from e


@router.post("/evaluate/{target_id}/{catalog_id}/stop", response_model=StopEvaluationResponse)
def stop_evaluation_endpoint(
    target_id: str = Path(...),
    catalog_id: str = Path(...),
    service: EvaluationService = Depends(get_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Stop the periodic evaluation of a cloud service."""
    try:
        return service.stop_evaluation({"target_id": target_id, "catalog_id": catalog_id}, token=token)
    except EvaluationServiceError as e:
        raise _http_error("Stop evaluation", e) from e


@router.get("/results", response_model=ListEvaluationResultsResponse)
def list_results_endpoint(
    target_id: Optional[str] = Query(None),
    catalog_id: Optional[str] = Query(None),
    control_id: Optional[str] = Query(None),
    sub_controls: Optional[str] = Query(None, description="Only results of sub-controls of this control."),
    parents_only: bool = Query(False),
    valid_manual_only: bool = Query(False),
    latest_by_control_id: bool = Query(False),
    page_size: int = Query(0),
    page_token: str = Query(""),
    service: EvaluationService = Depends(get_service),
    token: Optional[str] = Depends(bearer_token),
):
    """List evaluation results (optionally filtered and paginated)."""
    flt = {
        "target_id": target_id,
        "catalog_id": catalog_id,
        "control_id": control_id,
        "sub_controls": sub_controls,
        "parents_only": parents_only,
        "valid_manual_only": valid_manual_only,
    }
    request = {
        "filter": {k: v for k, v in flt.items() if v is not None},
        "latest_by_control_id": latest_by_control_id,
        "page_size": page_size,
        "page_token": page_token,
    }
    try:
        return service.list_evaluation_results(request, token=token)
    except EvaluationServiceError as e:
        raise _http_error("List evaluation results", e) from e


@router.post("/results", response_model=EvaluationResultModel)
def create_result_endpoint(
    result: dict[str, Any] = Body(...),
    service: EvaluationService = Depends(get_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Store a manually set evaluation result (COMPLIANT_MANUALLY / NOT_COMPLIANT_MANUALLY)."""
    try:
        return service.create_evaluation_result({"result": result}, token=token)
    except EvaluationServiceError as e:
        raise _http_error("Create evaluation result", e) from e


@router.get("/jobs", response_model=List[ScheduledEvaluation])
def list_jobs_endpoint(service: EvaluationService = Depends(get_service)):
    """List running periodic evaluations."""
    return [
        ScheduledEvaluation(
            target_id=job.key.target_id,
            catalog_id=job.key.catalog_id,
            interval_minutes=job.interval_minutes,
            next_run_time=job.next_run_time,
        )
        for job in service.list_scheduled_evaluations()
    ]
