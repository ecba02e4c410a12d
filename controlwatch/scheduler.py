"""Periodic evaluation jobs keyed by (target, catalog).

Wraps APScheduler's ``BackgroundScheduler``; jobs are looked up through an explicit
``JobKey`` map rather than by scanning scheduler tags.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .errors import AlreadyExistsError, JobNotRunningError, SchedulingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobKey:
    """Identity of an evaluation job."""

    target_id: str
    catalog_id: str

    @property
    def tag(self) -> str:
        return f"{self.target_id}-{self.catalog_id}"


@dataclass
class ScheduledJob:
    key: JobKey
    interval_minutes: int
    next_run_time: datetime | None


class EvaluationScheduler:
    """Registers, runs and cancels periodic evaluation jobs.

    Each job runs with ``max_instances=1``: a tick never starts while the previous tick of
    the same job is still running. Removing a job does not interrupt an in-flight tick.
    """

    def __init__(self, scheduler: BackgroundScheduler | None = None):
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self._jobs: dict[JobKey, Any] = {}
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Evaluation scheduler started")

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Evaluation scheduler stopped")

    def has_job(self, key: JobKey) -> bool:
        with self._lock:
            return key in self._jobs

    def add_job(
        self,
        key: JobKey,
        func: Callable[..., Any],
        interval_minutes: int,
        run_immediately: bool = True,
        **kwargs: Any,
    ) -> None:
        """Schedule ``func(**kwargs)`` every ``interval_minutes`` minutes."""
        if interval_minutes <= 0:
            raise SchedulingError(f"evaluation cannot be scheduled: interval '{interval_minutes}' is invalid")

        with self._lock:
            if key in self._jobs:
                raise AlreadyExistsError(
                    f"evaluation for Cloud Service '{key.target_id}' and Catalog ID '{key.catalog_id}' already running"
                )

            options: dict[str, Any] = {}
            if run_immediately:
                options["next_run_time"] = datetime.now(timezone.utc)
            # An explicit next_run_time=None would add the job paused
            job = self._scheduler.add_job(
                func,
                trigger=IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
                kwargs=kwargs,
                id=key.tag,
                name=f"evaluation:{key.tag}",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
                **options,
            )
            self._jobs[key] = job

        logger.info(
            "Evaluation of Cloud Service '%s' against catalog '%s' scheduled every %d minutes",
            key.target_id,
            key.catalog_id,
            interval_minutes,
        )

    def remove_job(self, key: JobKey) -> None:
        with self._lock:
            job = self._jobs.pop(key, None)
            if job is None:
                raise JobNotRunningError(
                    f"job for cloud service '{key.target_id}' and catalog '{key.catalog_id}' not running"
                )
            self._scheduler.remove_job(job.id)

        logger.info("Evaluation of Cloud Service '%s' against catalog '%s' stopped", key.target_id, key.catalog_id)

    def jobs(self) -> list[ScheduledJob]:
        with self._lock:
            items = list(self._jobs.items())
        return [
            ScheduledJob(
                key=key,
                interval_minutes=int(job.trigger.interval.total_seconds() // 60),
                next_run_time=getattr(job, "next_run_time", None),
            )
            for key, job in items
        ]
