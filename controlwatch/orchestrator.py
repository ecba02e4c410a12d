"""HTTP client for the Orchestrator service.

The Orchestrator owns catalogs, targets of evaluation and assessment results; the
evaluation service only reads them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Protocol, TypeVar

import requests  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from .catalog import AssessmentResult, Catalog, TargetOfEvaluation
from .errors import OrchestratorError, OrchestratorUnavailableError
from .pagination import list_all_paginated

logger = logging.getLogger(__name__)

DEFAULT_ORCHESTRATOR_URL = "http://localhost:8080"

ModelT = TypeVar("ModelT", bound=BaseModel)


class Orchestrator(Protocol):
    """What the evaluation service needs from the Orchestrator."""

    def get_catalog(self, catalog_id: str) -> Catalog: ...

    def get_target_of_evaluation(self, target_id: str, catalog_id: str) -> TargetOfEvaluation: ...

    def list_assessment_results(
        self,
        target_id: str,
        metric_ids: list[str],
        page_token: str = "",
        since: datetime | None = None,
    ) -> tuple[list[AssessmentResult], str]: ...


def _orchestrator_headers(token: str | None = None) -> dict[str, str]:
    """Return HTTP headers for Orchestrator API requests, including auth if provided."""
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _parse(model: type[ModelT], data: Any, what: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise OrchestratorError(f"orchestrator sent an invalid {what}: {exc}") from exc


class OrchestratorClient:
    """Orchestrator REST client based on ``requests``."""

    def __init__(
        self,
        base_url: str = DEFAULT_ORCHESTRATOR_URL,
        token: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(_orchestrator_headers(token))

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise OrchestratorUnavailableError(
                f"could not connect to orchestrator service: {exc}"
            ) from exc
        except requests.RequestException as exc:
            raise OrchestratorError(f"request to {url} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise OrchestratorError(
                f"orchestrator returned {resp.status_code} for {path}: {resp.text[:200]}"
            )
        try:
            data = resp.json()
        except ValueError as exc:
            # requests' JSONDecodeError is a ValueError
            raise OrchestratorError(f"orchestrator sent invalid JSON for {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise OrchestratorError(f"orchestrator sent an unexpected payload for {path}")
        return data

    def get_catalog(self, catalog_id: str) -> Catalog:
        data = self._get(f"/v1/orchestrator/catalogs/{catalog_id}")
        return _parse(Catalog, data, "catalog")

    def get_target_of_evaluation(self, target_id: str, catalog_id: str) -> TargetOfEvaluation:
        data = self._get(f"/v1/orchestrator/toes/{target_id}/catalogs/{catalog_id}")
        return _parse(TargetOfEvaluation, data, "target of evaluation")

    def list_assessment_results(
        self,
        target_id: str,
        metric_ids: list[str],
        page_token: str = "",
        since: datetime | None = None,
    ) -> tuple[list[AssessmentResult], str]:
        """One page of the latest assessment result per resource for the target and metrics.

        ``since`` asks the Orchestrator to leave out older results.
        """
        params: dict[str, Any] = {
            "filter.targetId": target_id,
            "filter.metricIds": metric_ids,
            "latestByResourceId": "true",
        }
        if since is not None:
            params["filter.since"] = since.isoformat()
        if page_token:
            params["pageToken"] = page_token
        data = self._get("/v1/orchestrator/assessment_results", params=params)
        results = [_parse(AssessmentResult, r, "assessment result") for r in data.get("results") or []]
        return results, data.get("nextPageToken", "") or ""


def list_all_assessment_results(
    orchestrator: Orchestrator,
    target_id: str,
    metric_ids: list[str],
    since: datetime | None = None,
) -> list[AssessmentResult]:
    """Fetch every page of assessment results for the target and metrics."""
    return list_all_paginated(
        lambda token: orchestrator.list_assessment_results(
            target_id, metric_ids, page_token=token, since=since
        )
    )
