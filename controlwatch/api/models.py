"""API request/response models that are not service messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

TARGET_ID_DESC = "ID of the target of evaluation (cloud service)."
CATALOG_ID_DESC = "ID of the catalog the target is evaluated against."


class StartEvaluationBody(BaseModel):
    """Body of POST /v1/evaluation/evaluate/{target_id}/{catalog_id}/start."""

    interval: int = Field(
        0,
        description="Evaluation interval in minutes. 0 uses the configured default.",
        examples=[5],
    )


class ScheduledEvaluation(BaseModel):
    """A running periodic evaluation."""

    target_id: str = Field(..., description=TARGET_ID_DESC, examples=["00000000-0000-0000-0000-000000000000"])
    catalog_id: str = Field(..., description=CATALOG_ID_DESC, examples=["EUCS"])
    interval_minutes: int = Field(..., description="Evaluation interval in minutes.", examples=[5])
    next_run_time: datetime | None = Field(
        None,
        description="Next scheduled evaluation (ISO 8601).",
        examples=["2024-01-01T12:05:00Z"],
    )
