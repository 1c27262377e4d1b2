"""Shared one-shot timer that drives quiz start and end callbacks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from quiz_live.constants.quiz_constants import QUIZ_TIMER_THREAD_NAME

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScheduledTask:
    """Handle returned by ``QuizTimer.schedule``."""

    job: Job
    run_at: datetime
    name: str


class QuizTimer:
    """Single-worker scheduler; callbacks never run concurrently with each other.

    Callbacks scheduled in the past run as soon as the worker is free.
    """

    def __init__(self, thread_name: str = QUIZ_TIMER_THREAD_NAME) -> None:
        self._scheduler = BackgroundScheduler(
            executors={
                "default": ThreadPoolExecutor(
                    max_workers=1,
                    pool_kwargs={"thread_name_prefix": thread_name},
                )
            },
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": None,
            },
            timezone=timezone.utc,
            daemon=True,
        )

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Quiz timer started")

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Quiz timer stopped")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def schedule(self, callback: Callable[[], None], run_at: datetime, name: str = "") -> ScheduledTask:
        """Arm a one-shot callback at ``run_at``."""
        if run_at.tzinfo is None:
            run_at = run_at.replace(tzinfo=timezone.utc)
        job = self._scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_at, timezone=timezone.utc),
            name=name or getattr(callback, "__name__", "quiz-task"),
        )
        return ScheduledTask(job=job, run_at=run_at, name=job.name)

    def cancel(self, task: ScheduledTask) -> bool:
        """Cancel a task; returns False when it already fired or was cancelled."""
        try:
            task.job.remove()
        except JobLookupError:
            return False
        return True

    def scheduled_count(self) -> int:
        return len(self._scheduler.get_jobs())
