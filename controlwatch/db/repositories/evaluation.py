"""Repository for evaluation result operations."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import MANUAL_STATUSES, EvaluationResult, utcnow


class EvaluationResultRepository:
    """Repository for evaluation results.

    Only inserts and reads: results form an append-only audit trail.
    """

    def __init__(self, session: Session):
        """Initialize the EvaluationResultRepository with a database session."""
        self.session = session

    def add_result(self, result: EvaluationResult) -> EvaluationResult:
        """Insert a new evaluation result."""
        self.session.add(result)
        self.session.flush()
        return result

    def get_result(self, result_id: str) -> Optional[EvaluationResult]:
        """Get an evaluation result by ID."""
        return self.session.get(EvaluationResult, result_id)

    def list_results(
        self,
        target_id: str | None = None,
        control_id: str | None = None,
        catalog_id: str | None = None,
        target_ids: Iterable[str] | None = None,
        valid_manual_only: bool = False,
        now: datetime | None = None,
    ) -> list[EvaluationResult]:
        """List evaluation results ordered by timestamp (oldest first).

        Args:
            target_id: Only results of this target
            control_id: Only results of this control
            catalog_id: Only results of controls from this catalog
            target_ids: Restrict to these targets (authorization scope)
            valid_manual_only: Only manually set results whose validity has not passed
            now: Reference time for validity checks (default: current time)
        """
        stmt = select(EvaluationResult)
        if target_id:
            stmt = stmt.where(EvaluationResult.target_id == target_id)
        if control_id:
            stmt = stmt.where(EvaluationResult.control_id == control_id)
        if catalog_id:
            stmt = stmt.where(EvaluationResult.control_catalog_id == catalog_id)
        if target_ids is not None:
            stmt = stmt.where(EvaluationResult.target_id.in_(list(target_ids)))
        if valid_manual_only:
            stmt = stmt.where(
                EvaluationResult.status.in_(list(MANUAL_STATUSES)),
                EvaluationResult.valid_until > (now or utcnow()),
            )
        stmt = stmt.order_by(EvaluationResult.timestamp.asc(), EvaluationResult.id.asc())
        res = self.session.execute(stmt)
        return list(res.scalars().all())
