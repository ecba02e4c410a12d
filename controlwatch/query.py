"""Filtering and pagination of stored evaluation results."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from .authz import AuthorizationStrategy
from .cache import ControlCache
from .config import PaginationConfig
from .db.models import EvaluationResult, utcnow
from .db.store import EvaluationResultStore
from .errors import ControlNotAvailableError, EvaluationServiceError, PermissionDeniedError
from .messages import (
    EvaluationResultModel,
    ListEvaluationResultsRequest,
    ListEvaluationResultsResponse,
    ResultFilter,
    validate_request,
)
from .pagination import paginate

logger = logging.getLogger(__name__)

_NOT_IN_TREE = object()


def latest_by_control_id(results: Iterable[EvaluationResult]) -> list[EvaluationResult]:
    """Keep the most recent result per control ID, ordered by timestamp."""
    latest: dict[str, EvaluationResult] = {}
    for r in results:
        current = latest.get(r.control_id)
        if current is None or (r.timestamp, r.id) > (current.timestamp, current.id):
            latest[r.control_id] = r
    return sorted(latest.values(), key=lambda r: (r.timestamp, r.id))


class ResultQuery:
    """Implements ListEvaluationResults on top of the result store and the control cache."""

    def __init__(
        self,
        store: EvaluationResultStore,
        cache: ControlCache,
        authz: AuthorizationStrategy,
        pagination: PaginationConfig | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cache = cache
        self.authz = authz
        self.pagination = pagination or PaginationConfig()
        self.now = now

    def list_evaluation_results(
        self, request: ListEvaluationResultsRequest | dict | None, token: str | None = None
    ) -> ListEvaluationResultsResponse:
        req = validate_request(request, ListEvaluationResultsRequest)
        flt = req.filter or ResultFilter()

        # Only targets we have access to, unless we may see all of them
        all_allowed, allowed = self.authz.allowed_targets(token)
        if not all_allowed and flt.target_id and flt.target_id not in allowed:
            raise PermissionDeniedError()

        results = self.store.list(
            target_id=flt.target_id,
            control_id=flt.control_id,
            catalog_id=flt.catalog_id,
            target_ids=None if all_allowed else allowed,
            valid_manual_only=flt.valid_manual_only,
            now=self.now(),
        )

        if flt.sub_controls or flt.parents_only:
            results = self._filter_by_tree(results, flt.sub_controls, flt.parents_only)

        if req.latest_by_control_id:
            results = latest_by_control_id(results)

        page, next_token = paginate(
            results,
            page_size=req.page_size,
            page_token=req.page_token,
            default_page_size=self.pagination.default_page_size,
            max_page_size=self.pagination.max_page_size,
        )
        return ListEvaluationResultsResponse(
            results=[EvaluationResultModel.model_validate(r) for r in page],
            next_page_token=next_token,
        )

    def _filter_by_tree(
        self, results: list[EvaluationResult], sub_controls: str | None, parents_only: bool
    ) -> list[EvaluationResult]:
        """Apply filters that depend on the position of a control in the cached catalog tree."""
        for catalog_id in {r.control_catalog_id for r in results}:
            if not self.cache.is_cached(catalog_id):
                try:
                    self.cache.cache_controls(catalog_id)
                except EvaluationServiceError as exc:
                    raise type(exc)(f"could not cache controls: {exc}") from exc

        filtered = []
        for r in results:
            parent = self._parent_of(r)
            if parent is _NOT_IN_TREE:
                logger.debug("Control '%s' of result %s is not in the cached catalog", r.control_id, r.id)
                continue
            if sub_controls and parent != sub_controls:
                continue
            if parents_only and parent:
                continue
            filtered.append(r)
        return filtered

    def _parent_of(self, result: EvaluationResult):
        try:
            return self.cache.parent_control_id(
                result.control_catalog_id, result.control_category_name, result.control_id
            )
        except ControlNotAvailableError:
            return _NOT_IN_TREE
