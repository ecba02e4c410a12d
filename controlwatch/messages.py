"""Request and response messages of the evaluation service."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Any, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from .db.models import EvaluationStatus
from .errors import EmptyRequestError, InvalidArgumentError

M = TypeVar("M", bound=BaseModel)

TARGET_ID_DESC = "ID of the target of evaluation (cloud service), a UUID."
CATALOG_ID_DESC = "ID of the catalog the target is evaluated against."


def _check_uuid(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError as exc:
        raise ValueError("value must be a valid UUID") from exc
    return value


TargetId = Annotated[str, AfterValidator(_check_uuid)]


class StartEvaluationRequest(BaseModel):
    target_id: TargetId = Field(..., description=TARGET_ID_DESC)
    catalog_id: str = Field(..., min_length=1, description=CATALOG_ID_DESC)
    interval: int = Field(
        0, ge=0, description="Evaluation interval in minutes; 0 uses the configured default."
    )


class StartEvaluationResponse(BaseModel):
    successful: bool = False


class StopEvaluationRequest(BaseModel):
    target_id: TargetId = Field(..., description=TARGET_ID_DESC)
    catalog_id: str = Field(..., min_length=1, description=CATALOG_ID_DESC)


class StopEvaluationResponse(BaseModel):
    pass


class EvaluationResultModel(BaseModel):
    """Evaluation result as exchanged with clients."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    control_id: str = Field(..., min_length=1)
    control_category_name: str = Field(..., min_length=1)
    control_catalog_id: str = Field(..., min_length=1)
    parent_control_id: str | None = None
    target_id: TargetId = Field(..., description=TARGET_ID_DESC)
    status: EvaluationStatus
    timestamp: datetime | None = None
    valid_until: datetime | None = None
    comment: str | None = None
    failing_assessment_result_ids: list[str] = Field(default_factory=list)


class CreateEvaluationResultRequest(BaseModel):
    result: EvaluationResultModel


class ResultFilter(BaseModel):
    """Filters of ListEvaluationResults; all set filters must match."""

    target_id: TargetId | None = None
    catalog_id: str | None = None
    control_id: str | None = None
    sub_controls: str | None = Field(
        None, description="Parent control ID: only results of its sub-controls."
    )
    parents_only: bool = False
    valid_manual_only: bool = False


class ListEvaluationResultsRequest(BaseModel):
    filter: ResultFilter | None = None
    latest_by_control_id: bool = False
    page_size: int = Field(0, ge=0)
    page_token: str = ""


class ListEvaluationResultsResponse(BaseModel):
    results: list[EvaluationResultModel] = Field(default_factory=list)
    next_page_token: str = ""


def validate_request(request: Any, model: type[M]) -> M:
    """Return ``request`` as a validated ``model`` instance.

    Raises:
        EmptyRequestError: request is None
        InvalidArgumentError: request does not validate, with one entry per offending field
    """
    if request is None:
        raise EmptyRequestError()
    try:
        if isinstance(request, model):
            # Re-validate: instances may have been built with model_construct or mutated
            return model.model_validate(request.model_dump())
        if isinstance(request, Mapping):
            return model.model_validate(dict(request))
    except ValidationError as exc:
        fields = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidArgumentError(f"invalid request: {fields}") from exc
    raise InvalidArgumentError(f"invalid request type: {type(request).__name__}")
