"""Evaluation service: schedules control evaluations and turns assessment results into
per-control compliance verdicts.

One tick of a scheduled evaluation walks the top-level controls of the catalog that are
in scope for the target of evaluation. A parent control fans out to its sub-controls in
parallel and every leaf stores its own ``EvaluationResult``; no roll-up result is written
for parents. Parent-level views are built at query time (``sub_controls`` and
``parents_only`` filters).
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta
from functools import partial
from typing import Callable, Iterable

from .authz import AccessType, AuthorizationStrategy, strategy_from_config
from .cache import ControlCache, get_metric_ids
from .catalog import AssessmentResult, Control, TargetOfEvaluation, control_key
from .config import AppConfig
from .db.models import EvaluationResult, EvaluationStatus, as_utc, utcnow
from .db.store import EvaluationResultStore
from .errors import (
    EvaluationServiceError,
    InvalidArgumentError,
    OrchestratorError,
    PermissionDeniedError,
    SchedulingError,
)
from .fanout import ParallelRunner
from .messages import (
    CreateEvaluationResultRequest,
    EvaluationResultModel,
    ListEvaluationResultsRequest,
    ListEvaluationResultsResponse,
    StartEvaluationRequest,
    StartEvaluationResponse,
    StopEvaluationRequest,
    StopEvaluationResponse,
    validate_request,
)
from .orchestrator import Orchestrator, OrchestratorClient, list_all_assessment_results
from .query import ResultQuery
from .scheduler import EvaluationScheduler, JobKey, ScheduledJob

logger = logging.getLogger(__name__)

# Higher rank wins when aggregating
_STATUS_RANK = {
    EvaluationStatus.COMPLIANT: 0,
    EvaluationStatus.COMPLIANT_MANUALLY: 0,
    EvaluationStatus.PENDING: 1,
    EvaluationStatus.NOT_COMPLIANT: 2,
    EvaluationStatus.NOT_COMPLIANT_MANUALLY: 2,
}


def worst_status(statuses: Iterable[EvaluationStatus]) -> EvaluationStatus:
    """Aggregate statuses: NOT_COMPLIANT > PENDING > COMPLIANT. Empty input is PENDING."""
    worst = None
    for s in statuses:
        if worst is None or _STATUS_RANK[s] > _STATUS_RANK[worst]:
            worst = s
    return worst or EvaluationStatus.PENDING


def compute_compliance(
    results: Iterable[AssessmentResult],
    metric_ids: Iterable[str],
    since: datetime,
) -> tuple[EvaluationStatus, list[str]]:
    """Compliance of a control from the assessment results of its metrics.

    Only results at or after ``since`` count, and of those only the most recent one per
    (resource, metric). Returns the status and the IDs of the non-compliant results.
    """
    wanted = set(metric_ids)
    latest: dict[tuple[str, str], AssessmentResult] = {}
    for r in results:
        if r.metric_id not in wanted or as_utc(r.timestamp) < since:
            continue
        key = (r.resource_id, r.metric_id)
        current = latest.get(key)
        if current is None or as_utc(r.timestamp) > as_utc(current.timestamp):
            latest[key] = r

    if not latest:
        return EvaluationStatus.PENDING, []

    status = worst_status(
        EvaluationStatus.COMPLIANT if r.compliant else EvaluationStatus.NOT_COMPLIANT
        for r in latest.values()
    )
    failing = sorted(r.id for r in latest.values() if not r.compliant)
    return status, failing


def restrict_to_scope(control: Control, in_scope: set[str]) -> Control | None:
    """The part of a control tree that is in scope, or None.

    A parent keeps only its in-scope sub-controls; a parent that is in scope itself but
    lists none of its sub-controls keeps all of them.
    """
    subs = [s for s in (restrict_to_scope(sub, in_scope) for sub in control.controls) if s is not None]
    if subs:
        return control.model_copy(update={"controls": subs})
    if control.key in in_scope:
        return control
    return None


def _wrap(prefix: str, exc: Exception) -> EvaluationServiceError:
    """Add context to an upstream error, keeping its class (and thus its status code)."""
    if isinstance(exc, EvaluationServiceError):
        return type(exc)(f"{prefix}: {exc}")
    return OrchestratorError(f"{prefix}: {exc}")


class EvaluationService:
    """Implements StartEvaluation, StopEvaluation, ListEvaluationResults and
    CreateEvaluationResult."""

    def __init__(
        self,
        config: AppConfig | None = None,
        store: EvaluationResultStore | None = None,
        orchestrator: Orchestrator | None = None,
        authz: AuthorizationStrategy | None = None,
        scheduler: EvaluationScheduler | None = None,
        start_scheduler: bool = True,
        now: Callable[[], datetime] = utcnow,
    ):
        self.config = config or AppConfig()
        self.store = store or EvaluationResultStore.from_url(self.config.database_url)
        self.authz = authz or strategy_from_config(self.config.authorization)
        self.scheduler = scheduler or EvaluationScheduler()
        self.start_scheduler = start_scheduler
        self.now = now

        self._orchestrator = orchestrator
        self._orchestrator_lock = threading.Lock()

        self.cache = ControlCache(self.init_orchestrator_client)
        self.query = ResultQuery(self.store, self.cache, self.authz, self.config.pagination, now=now)
        self.runner = ParallelRunner(max_concurrent=self.config.evaluation.max_concurrent)

    def init_orchestrator_client(self) -> Orchestrator:
        """Return the orchestrator client, creating it on first use."""
        with self._orchestrator_lock:
            if self._orchestrator is None:
                cfg = self.config.orchestrator
                self._orchestrator = OrchestratorClient(
                    base_url=cfg.url, token=cfg.token, timeout=cfg.timeout_seconds
                )
            return self._orchestrator

    def shutdown(self) -> None:
        self.scheduler.shutdown()

    # Scheduling

    def start_evaluation(
        self, request: StartEvaluationRequest | dict | None, token: str | None = None
    ) -> StartEvaluationResponse:
        """Start evaluating a target of evaluation periodically against a catalog."""
        req = validate_request(request, StartEvaluationRequest)

        if not self.authz.check_access(token, AccessType.UPDATE, req.target_id):
            raise PermissionDeniedError()

        interval = req.interval or self.config.evaluation.default_interval_minutes

        client = self.init_orchestrator_client()

        try:
            self.cache.cache_controls(req.catalog_id)
        except Exception as exc:
            err = _wrap("could not cache controls", exc)
            logger.error("%s", err)
            raise err from exc

        try:
            toe = client.get_target_of_evaluation(req.target_id, req.catalog_id)
        except Exception as exc:
            err = _wrap("could not get target of evaluation", exc)
            logger.error("%s", err)
            raise err from exc

        self.add_job_to_scheduler(toe, req.catalog_id, interval)

        if self.start_scheduler:
            self.scheduler.start()

        return StartEvaluationResponse(successful=True)

    def add_job_to_scheduler(
        self, toe: TargetOfEvaluation | None, catalog_id: str | None, interval: int
    ) -> JobKey:
        if toe is None or not catalog_id:
            raise SchedulingError("evaluation cannot be scheduled: target of evaluation or catalog is invalid")
        if interval <= 0:
            raise SchedulingError(f"evaluation cannot be scheduled: interval '{interval}' is invalid")

        key = JobKey(toe.target_id, catalog_id)
        self.scheduler.add_job(key, self.evaluate_catalog, interval, toe=toe, catalog_id=catalog_id)
        return key

    def stop_evaluation(
        self, request: StopEvaluationRequest | dict | None, token: str | None = None
    ) -> StopEvaluationResponse:
        """Stop the periodic evaluation of a target of evaluation."""
        req = validate_request(request, StopEvaluationRequest)

        if not self.authz.check_access(token, AccessType.UPDATE, req.target_id):
            raise PermissionDeniedError()

        self.scheduler.remove_job(JobKey(req.target_id, req.catalog_id))
        return StopEvaluationResponse()

    def list_scheduled_evaluations(self) -> list[ScheduledJob]:
        return self.scheduler.jobs()

    # Evaluation

    def evaluate_catalog(self, toe: TargetOfEvaluation, catalog_id: str) -> list[EvaluationResult]:
        """One evaluation tick: evaluate the in-scope controls of the catalog."""
        logger.info("Starting evaluation of Cloud Service '%s' against catalog '%s'", toe.target_id, catalog_id)

        if not self.cache.is_cached(catalog_id):
            try:
                self.cache.cache_controls(catalog_id)
            except EvaluationServiceError as exc:
                logger.error("could not cache controls for catalog '%s': %s", catalog_id, exc)
                return []

        overrides = self.get_manual_overrides(toe.target_id, catalog_id)

        results: list[EvaluationResult] = []
        errors = 0
        for control in self.controls_in_scope(toe, catalog_id):
            try:
                results.extend(self.evaluate_control(toe, control, overrides))
            except Exception:
                errors += 1
                logger.exception("Evaluation of control '%s' failed", control.id)

        logger.info(
            "Evaluation of Cloud Service '%s' against catalog '%s' finished: %d results, %d errors",
            toe.target_id,
            catalog_id,
            len(results),
            errors,
        )
        return results

    def controls_in_scope(self, toe: TargetOfEvaluation, catalog_id: str) -> list[Control]:
        """Top-level controls of the catalog to evaluate for the target of evaluation.

        Without controls in scope the whole catalog is evaluated.
        """
        top = self.cache.top_level_controls(catalog_id)
        if not toe.controls_in_scope:
            return top
        in_scope = {c.key for c in toe.controls_in_scope}
        return [c for c in (restrict_to_scope(c, in_scope) for c in top) if c is not None]

    def get_manual_overrides(self, target_id: str, catalog_id: str) -> dict[str, EvaluationResult]:
        """Latest still-valid manual result per control, keyed by ``"<category>-<control>"``."""
        manual = self.store.list(
            target_id=target_id, catalog_id=catalog_id, valid_manual_only=True, now=self.now()
        )
        # Ordered by timestamp, so later results replace earlier ones
        return {control_key(r.control_category_name, r.control_id): r for r in manual}

    def evaluate_control(
        self,
        toe: TargetOfEvaluation,
        control: Control,
        manual_overrides: dict[str, EvaluationResult] | None = None,
    ) -> list[EvaluationResult]:
        """Evaluate a control: sub-controls in parallel for parents, the control itself for leaves."""
        manual_overrides = manual_overrides or {}

        if control.is_parent:
            outcome = self.runner.run(
                {
                    sub.key: partial(self.evaluate_control, toe, sub, manual_overrides)
                    for sub in control.controls
                }
            )
            for name, exc in outcome.errors.items():
                logger.error("Evaluation of sub-control '%s' of '%s' failed: %s", name, control.id, exc)
            return [r for results in outcome.results.values() for r in results]

        override = manual_overrides.get(control.key)
        if override is not None:
            return [self._store_manual_override(toe, control, override)]

        result = self.evaluate_subcontrol(toe, control)
        return [result] if result is not None else []

    def evaluate_subcontrol(self, toe: TargetOfEvaluation, control: Control) -> EvaluationResult | None:
        """Evaluate a leaf control from the recent assessment results of its metrics."""
        try:
            metrics = self.cache.get_all_metrics_from_control(
                toe.catalog_id, control.category_name, control.id
            )
        except EvaluationServiceError as exc:
            logger.error(
                "could not get metrics for control '%s' and Cloud Service '%s': %s",
                control.id,
                toe.target_id,
                exc,
            )
            return None

        metric_ids = get_metric_ids(metrics)
        now = self.now()
        since = now - timedelta(hours=self.config.evaluation.assessment_window_hours)
        assessment_results: list[AssessmentResult] = []
        if metric_ids:
            try:
                assessment_results = list_all_assessment_results(
                    self.init_orchestrator_client(), toe.target_id, metric_ids, since=since
                )
            except EvaluationServiceError as exc:
                # Might only be a temporary network problem; the next tick tries again
                logger.error(
                    "could not get assessment results for Cloud Service '%s' and metrics %s: %s",
                    toe.target_id,
                    metric_ids,
                    exc,
                )
        else:
            logger.debug("No metrics available for control '%s'", control.id)

        # The Orchestrator may ignore the window, so filter here as well
        status, failing = compute_compliance(assessment_results, metric_ids, since)

        result = EvaluationResult(
            id=str(uuid.uuid4()),
            control_id=control.id,
            control_category_name=control.category_name,
            control_catalog_id=toe.catalog_id,
            parent_control_id=control.parent_control_id,
            target_id=toe.target_id,
            status=status,
            timestamp=now,
            failing_assessment_result_ids=failing,
        )
        self.store.create(result)

        logger.debug(
            "Evaluation result %s stored for control '%s' and Cloud Service '%s': %s",
            result.id,
            control.id,
            toe.target_id,
            status.value,
        )
        return result

    def _store_manual_override(
        self, toe: TargetOfEvaluation, control: Control, override: EvaluationResult
    ) -> EvaluationResult:
        result = EvaluationResult(
            id=str(uuid.uuid4()),
            control_id=control.id,
            control_category_name=control.category_name,
            control_catalog_id=toe.catalog_id,
            parent_control_id=control.parent_control_id,
            target_id=toe.target_id,
            status=override.status,
            timestamp=self.now(),
            valid_until=override.valid_until,
            comment=override.comment,
            failing_assessment_result_ids=[],
        )
        self.store.create(result)
        logger.debug("Manual result for control '%s' is valid until %s", control.id, override.valid_until)
        return result

    # Results

    def create_evaluation_result(
        self, request: CreateEvaluationResultRequest | dict | None, token: str | None = None
    ) -> EvaluationResultModel:
        """Store a manually set evaluation result."""
        req = validate_request(request, CreateEvaluationResultRequest)
        r = req.result

        if not self.authz.check_access(token, AccessType.CREATE, r.target_id):
            raise PermissionDeniedError()

        if not r.status.is_manual:
            raise InvalidArgumentError("only manually set statuses are allowed")

        now = self.now()
        if r.valid_until is None or as_utc(r.valid_until) <= now:
            raise InvalidArgumentError("validity must be set")

        result = EvaluationResult(
            id=r.id or str(uuid.uuid4()),
            control_id=r.control_id,
            control_category_name=r.control_category_name,
            control_catalog_id=r.control_catalog_id,
            parent_control_id=r.parent_control_id,
            target_id=r.target_id,
            status=r.status,
            timestamp=r.timestamp or now,
            valid_until=r.valid_until,
            comment=r.comment,
            failing_assessment_result_ids=list(r.failing_assessment_result_ids),
        )
        self.store.create(result)
        logger.info(
            "Manual evaluation result %s (%s) stored for control '%s'", result.id, r.status.value, r.control_id
        )
        return EvaluationResultModel.model_validate(result)

    def list_evaluation_results(
        self, request: ListEvaluationResultsRequest | dict | None, token: str | None = None
    ) -> ListEvaluationResultsResponse:
        return self.query.list_evaluation_results(request, token=token)
