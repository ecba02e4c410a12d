"""Thread-safe result store used by the evaluator and the query layer."""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext

from sqlalchemy.orm import sessionmaker

from . import Base, make_engine
from .models import EvaluationResult
from .repositories import EvaluationResultRepository

logger = logging.getLogger(__name__)


class EvaluationResultStore:
    """Owns persisted evaluation results.

    Every call runs in its own short session and transaction, so a failed write never
    rolls back results written by sibling evaluations.
    """

    def __init__(self, session_factory: sessionmaker, serialize: bool = False):
        self._session_factory = session_factory
        # SQLite connections are shared across evaluation threads
        self._lock = threading.Lock() if serialize else nullcontext()

    @classmethod
    def from_url(cls, database_url: str, create_tables: bool = True) -> EvaluationResultStore:
        engine = make_engine(database_url)
        if create_tables:
            Base.metadata.create_all(engine)
        return cls(
            sessionmaker(engine, expire_on_commit=False),
            serialize=engine.dialect.name == "sqlite",
        )

    def create(self, result: EvaluationResult) -> EvaluationResult:
        with self._lock, self._session_factory() as session:
            try:
                EvaluationResultRepository(session).add_result(result)
                session.commit()
            except Exception:
                session.rollback()
                raise
            logger.debug("Stored evaluation result %s for control '%s'", result.id, result.control_id)
            return result

    def get(self, result_id: str) -> EvaluationResult | None:
        with self._lock, self._session_factory() as session:
            return EvaluationResultRepository(session).get_result(result_id)

    def list(self, **filters) -> list[EvaluationResult]:
        """List results; keyword filters are those of ``EvaluationResultRepository.list_results``."""
        with self._lock, self._session_factory() as session:
            return EvaluationResultRepository(session).list_results(**filters)
