"""Process-wide cache of catalog control trees."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .catalog import Catalog, Control, Metric, control_key
from .errors import (
    CatalogIdMissingError,
    CategoryNameMissingError,
    ControlIdMissingError,
    ControlNotAvailableError,
    EvaluationServiceError,
)
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)


class ControlCache:
    """Indexes every control of a catalog by ``"<categoryName>-<controlId>"``.

    Read by every concurrent evaluation and refreshed by ``cache_controls``; all access to
    the underlying map goes through the lock.
    """

    def __init__(self, orchestrator: Orchestrator | Callable[[], Orchestrator]):
        # Either a client or a factory that initializes one on first use
        self._orchestrator = orchestrator
        self._lock = threading.RLock()
        self._catalog_controls: dict[str, dict[str, Control]] = {}
        self._top_level: dict[str, list[Control]] = {}

    def _client(self) -> Orchestrator:
        if hasattr(self._orchestrator, "get_catalog"):
            return self._orchestrator  # type: ignore[return-value]
        return self._orchestrator()  # type: ignore[operator]

    def cache_controls(self, catalog_id: str) -> None:
        """Fetch the catalog from the Orchestrator and (re)build its index."""
        if not catalog_id:
            raise CatalogIdMissingError()

        catalog = self._client().get_catalog(catalog_id)

        index: dict[str, Control] = {}
        top_level: list[Control] = []
        for category in catalog.categories:
            for control in category.controls:
                _fill_category(control, category.name, category.catalog_id or catalog.id)
                _index_tree(control, index)
                if not control.parent_control_id:
                    top_level.append(control)

        if not index:
            raise EvaluationServiceError(f"no controls for catalog '{catalog_id}' available")

        with self._lock:
            self._catalog_controls[catalog_id] = index
            self._top_level[catalog_id] = top_level

        logger.info("Cached %d controls of catalog '%s'", len(index), catalog_id)

    def is_cached(self, catalog_id: str) -> bool:
        with self._lock:
            return catalog_id in self._catalog_controls

    def evict(self, catalog_id: str) -> None:
        with self._lock:
            self._catalog_controls.pop(catalog_id, None)
            self._top_level.pop(catalog_id, None)

    def top_level_controls(self, catalog_id: str) -> list[Control]:
        """Controls without a parent, in catalog order."""
        with self._lock:
            if catalog_id not in self._top_level:
                raise ControlNotAvailableError(f"catalog '{catalog_id}' is not cached")
            return list(self._top_level[catalog_id])

    def get_control(self, catalog_id: str, category_name: str, control_id: str) -> Control:
        if not catalog_id:
            raise CatalogIdMissingError()
        if not category_name:
            raise CategoryNameMissingError()
        if not control_id:
            raise ControlIdMissingError()

        with self._lock:
            control = self._catalog_controls.get(catalog_id, {}).get(
                control_key(category_name, control_id)
            )
        if control is None:
            raise ControlNotAvailableError()
        return control

    def get_metrics_from_subcontrols(self, control: Control | None) -> list[Metric] | None:
        """Metrics of the direct sub-controls, or None if the control has none."""
        if control is None:
            raise EvaluationServiceError("control is missing")
        if not control.controls:
            return None

        metrics: list[Metric] = []
        for sub in control.controls:
            subcontrol = self.get_control(sub.category_catalog_id, sub.category_name, sub.id)
            metrics.extend(subcontrol.metrics)
        return metrics

    def get_all_metrics_from_control(
        self, catalog_id: str, category_name: str, control_id: str
    ) -> list[Metric]:
        """Own metrics of the control plus the metrics of its sub-controls."""
        control = self.get_control(catalog_id, category_name, control_id)
        metrics = list(control.metrics)
        sub_metrics = self.get_metrics_from_subcontrols(control)
        if sub_metrics:
            metrics.extend(sub_metrics)
        return metrics

    def parent_control_id(self, catalog_id: str, category_name: str, control_id: str) -> str | None:
        return self.get_control(catalog_id, category_name, control_id).parent_control_id


def _fill_category(control: Control, category_name: str, catalog_id: str, parent: Control | None = None) -> None:
    """Complete addressing fields the wire format may leave out on nested controls."""
    if not control.category_name:
        control.category_name = category_name
    if not control.category_catalog_id:
        control.category_catalog_id = catalog_id
    if parent is not None and not control.parent_control_id:
        control.parent_control_id = parent.id
        control.parent_control_category_name = parent.category_name
        control.parent_control_category_catalog_id = parent.category_catalog_id
    for sub in control.controls:
        _fill_category(sub, category_name, catalog_id, parent=control)


def _index_tree(control: Control, index: dict[str, Control]) -> None:
    index[control.key] = control
    for sub in control.controls:
        _index_tree(sub, index)


def get_metric_ids(metrics: list[Metric]) -> list[str]:
    return [m.id for m in metrics]
