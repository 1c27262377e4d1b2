"""Process-wide registry of quiz schedules sharing one timer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from threading import Lock

from quiz_live.constants.quiz_constants import QUIZ_GRACE_PERIOD_SECONDS
from quiz_live.core.errors import QuizNotFoundError
from quiz_live.core.metrics import QuizScheduleMetrics, default_metrics
from quiz_live.core.models import QuizExercise, QuizSubmission, Result, utc_now
from quiz_live.core.protocols import (
    MessagingProtocol,
    QuizExerciseRepositoryProtocol,
    StatisticsProtocol,
)
from quiz_live.core.services.quiz_schedule import QuizSchedule
from quiz_live.core.services.quiz_timer import QuizTimer
from quiz_live.core.services.result_consolidator import ResultConsolidator

logger = logging.getLogger(__name__)


class QuizScheduleService:
    """Facade the API layer uses to reach the schedule of a quiz by its id."""

    def __init__(
        self,
        timer: QuizTimer,
        quiz_repository: QuizExerciseRepositoryProtocol,
        messaging: MessagingProtocol,
        statistics: StatisticsProtocol,
        consolidator: ResultConsolidator,
        grace_period_seconds: int = QUIZ_GRACE_PERIOD_SECONDS,
        metrics: QuizScheduleMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._lock = Lock()
        self._schedules: dict[int, QuizSchedule] = {}
        self._timer = timer
        self._quiz_repository = quiz_repository
        self._messaging = messaging
        self._statistics = statistics
        self._consolidator = consolidator
        self._grace_period_seconds = grace_period_seconds
        self._metrics = metrics or default_metrics()
        self._clock = clock

    @property
    def grace_period_seconds(self) -> int:
        return self._grace_period_seconds

    def start_schedule(self) -> None:
        """Start the timer and arm every quiz that is planned to start."""
        self._timer.start()
        planned = self._quiz_repository.find_all_planned_to_start()
        for quiz in planned:
            try:
                self.schedule_quiz_start(quiz.id)
            except QuizNotFoundError:
                logger.warning("Quiz %s disappeared while starting the schedule", quiz.id)
        logger.info("Quiz schedule started with %d planned quizzes", len(planned))

    def stop_schedule(self) -> None:
        with self._lock:
            schedules = list(self._schedules.values())
            self._schedules.clear()
        for schedule in schedules:
            schedule.cancel()
        self._timer.shutdown(wait=False)

    def schedule_quiz_start(self, quiz_id: int) -> QuizSchedule:
        schedule = self._get_or_create(quiz_id)
        schedule.schedule_start()
        return schedule

    def schedule_quiz_end(self, quiz_id: int) -> QuizSchedule:
        schedule = self._get_or_create(quiz_id)
        schedule.schedule_end()
        return schedule

    def get_schedule(self, quiz_id: int) -> QuizSchedule | None:
        with self._lock:
            return self._schedules.get(quiz_id)

    def get_quiz_exercise(self, quiz_id: int) -> QuizExercise | None:
        """Return the quiz as last loaded by its schedule, if it is scheduled."""
        schedule = self.get_schedule(quiz_id)
        return schedule.quiz_exercise if schedule else None

    def update_submission(self, quiz_id: int, login: str, submission: QuizSubmission) -> None:
        self._get_or_create(quiz_id).update_submission(login, submission)
        self._metrics.submissions_cached.inc()

    def get_quiz_submission(self, quiz_id: int, login: str) -> QuizSubmission:
        schedule = self.get_schedule(quiz_id)
        if schedule is None:
            return QuizSubmission(submitted_answers=[])
        return schedule.get_submission(login)

    def add_result_for_statistic_update(self, quiz_id: int, result: Result) -> None:
        self._get_or_create(quiz_id).add_result_for_statistics(result)

    def clear_quiz_data(self, quiz_id: int) -> None:
        """Drop the cache and timers of a deleted quiz."""
        with self._lock:
            schedule = self._schedules.pop(quiz_id, None)
        if schedule is not None:
            schedule.clear_quiz_data()
            logger.info("Cleared schedule data of quiz %s", quiz_id)

    def _get_or_create(self, quiz_id: int) -> QuizSchedule:
        with self._lock:
            schedule = self._schedules.get(quiz_id)
            if schedule is not None:
                return schedule
        quiz = self._quiz_repository.find_by_id(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id)
        with self._lock:
            # another thread may have created it meanwhile
            schedule = self._schedules.get(quiz_id)
            if schedule is None:
                schedule = QuizSchedule(
                    quiz,
                    timer=self._timer,
                    quiz_repository=self._quiz_repository,
                    messaging=self._messaging,
                    statistics=self._statistics,
                    consolidator=self._consolidator,
                    grace_period_seconds=self._grace_period_seconds,
                    metrics=self._metrics,
                    clock=self._clock,
                )
                self._schedules[quiz_id] = schedule
            return schedule
