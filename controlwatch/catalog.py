"""Wire models exchanged with the Orchestrator.

The Orchestrator speaks camelCase JSON; every model accepts both the camelCase
alias and the snake_case field name.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Metric(WireModel):
    """A measurable property assessed on resources, attached to leaf controls."""

    id: str
    name: str = ""
    description: str | None = None
    category: str | None = None


class Control(WireModel):
    """A node of the catalog tree. Controls with sub-controls are parents."""

    id: str
    name: str = ""
    description: str | None = None
    category_name: str = ""
    category_catalog_id: str = ""
    parent_control_id: str | None = None
    parent_control_category_name: str | None = None
    parent_control_category_catalog_id: str | None = None
    controls: list[Control] = Field(default_factory=list)
    metrics: list[Metric] = Field(default_factory=list)
    assurance_level: str | None = None

    @property
    def is_parent(self) -> bool:
        return len(self.controls) > 0

    @property
    def key(self) -> str:
        """Cache key of this control within its catalog."""
        return control_key(self.category_name, self.id)


class Category(WireModel):
    name: str
    catalog_id: str = ""
    description: str | None = None
    controls: list[Control] = Field(default_factory=list)


class Catalog(WireModel):
    id: str
    name: str = ""
    description: str | None = None
    categories: list[Category] = Field(default_factory=list)
    assurance_levels: list[str] = Field(default_factory=list)


class TargetOfEvaluation(WireModel):
    """The pairing of a cloud service (target) with the catalog it is evaluated against."""

    target_id: str
    catalog_id: str
    assurance_level: str | None = None
    controls_in_scope: list[Control] = Field(default_factory=list)


class AssessmentResult(WireModel):
    """Compliance verdict of one metric on one resource at one point in time."""

    id: str
    timestamp: datetime
    metric_id: str
    compliant: bool
    resource_id: str = ""
    target_id: str = ""
    metric_configuration: dict | None = None
    evidence_id: str | None = None
    non_compliance_comments: str | None = None


def control_key(category_name: str, control_id: str) -> str:
    return f"{category_name}-{control_id}"
