"""Per-quiz state machine that starts a live quiz and consolidates it at the end."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum, auto
from threading import RLock

from quiz_live.constants.quiz_constants import QUIZ_GRACE_PERIOD_SECONDS
from quiz_live.core.errors import QuizNotFoundError
from quiz_live.core.metrics import QuizScheduleMetrics, default_metrics
from quiz_live.core.models import QuizExercise, QuizSubmission, Result, utc_now
from quiz_live.core.protocols import (
    MessagingProtocol,
    QuizExerciseRepositoryProtocol,
    StatisticsProtocol,
)
from quiz_live.core.services.quiz_timer import QuizTimer, ScheduledTask
from quiz_live.core.services.result_consolidator import ResultAccumulator, ResultConsolidator
from quiz_live.core.services.submission_cache import SubmissionCache

logger = logging.getLogger(__name__)


class QuizPhase(Enum):
    UNSCHEDULED = auto()
    START_SCHEDULED = auto()
    RUNNING = auto()
    END_SCHEDULED = auto()
    CONSOLIDATED = auto()


class QuizSchedule:
    """Owns the submission cache and the start/end timers of one quiz.

    Every scheduling call reloads the quiz first because its release and due
    dates can be edited while it is scheduled, and always cancels the timer it
    replaces, so at most one start and one end callback are armed.
    """

    def __init__(
        self,
        quiz_exercise: QuizExercise,
        timer: QuizTimer,
        quiz_repository: QuizExerciseRepositoryProtocol,
        messaging: MessagingProtocol,
        statistics: StatisticsProtocol,
        consolidator: ResultConsolidator,
        grace_period_seconds: int = QUIZ_GRACE_PERIOD_SECONDS,
        metrics: QuizScheduleMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.quiz_id = quiz_exercise.id
        self._quiz_exercise = quiz_exercise
        self._timer = timer
        self._quiz_repository = quiz_repository
        self._messaging = messaging
        self._statistics = statistics
        self._consolidator = consolidator
        self._grace_period = timedelta(seconds=grace_period_seconds)
        self._metrics = metrics or default_metrics()
        self._clock = clock

        self._lock = RLock()
        self._cache = SubmissionCache()
        self._results = ResultAccumulator()
        self._start_task: ScheduledTask | None = None
        self._end_task: ScheduledTask | None = None
        self._phase = QuizPhase.UNSCHEDULED

    @property
    def phase(self) -> QuizPhase:
        with self._lock:
            return self._phase

    @property
    def quiz_exercise(self) -> QuizExercise:
        return self._quiz_exercise

    @property
    def pending_results(self) -> list[Result]:
        return self._results.snapshot()

    # --- Submission cache ---

    def update_submission(self, login: str | None, submission: QuizSubmission | None) -> None:
        self._cache.upsert(login, submission)

    def get_submission(self, login: str) -> QuizSubmission:
        return self._cache.get(login)

    def cached_submission_count(self) -> int:
        return len(self._cache)

    def clear_quiz_data(self) -> None:
        self.cancel()
        self._cache.clear()

    # --- Scheduling ---

    def schedule_start(self) -> None:
        """Arm the start timer at the release date if the quiz starts in the future."""
        quiz = self._reload()
        now = self._clock()
        with self._lock:
            self._cancel_start()
            if quiz.is_planned_to_start and quiz.release_date is not None and quiz.release_date > now:
                self._start_task = self._timer.schedule(
                    self._start_quiz, quiz.release_date, name=f"quiz-{self.quiz_id}-start"
                )
                self._phase = QuizPhase.START_SCHEDULED
                logger.info("Scheduled start of quiz %s at %s", self.quiz_id, quiz.release_date)
                return
            if self._phase is QuizPhase.START_SCHEDULED:
                self._phase = QuizPhase.UNSCHEDULED
        if quiz.has_started(now):
            # already running, e.g. after a restart or a "start now" edit
            self.schedule_end()

    def schedule_end(self) -> None:
        """Arm consolidation at the due date plus the grace period."""
        quiz = self._reload()
        now = self._clock()
        with self._lock:
            self._cancel_end()
            if quiz.due_date is None:
                return
            if quiz.due_date > now or self._ended_without_consolidation(quiz, now):
                run_at = quiz.due_date + self._grace_period
                self._end_task = self._timer.schedule(
                    self.process_cached_submissions, run_at, name=f"quiz-{self.quiz_id}-end"
                )
                self._phase = QuizPhase.END_SCHEDULED
                logger.info("Scheduled end of quiz %s at %s", self.quiz_id, run_at)

    def cancel(self) -> None:
        """Cancel both timers, e.g. because the quiz was deleted."""
        with self._lock:
            self._cancel_start()
            self._cancel_end()
            if self._phase is not QuizPhase.CONSOLIDATED:
                self._phase = QuizPhase.UNSCHEDULED

    def _ended_without_consolidation(self, quiz: QuizExercise, now: datetime) -> bool:
        # due date moved into the past while the quiz was running
        return quiz.has_started(now) and self._phase in (QuizPhase.RUNNING, QuizPhase.END_SCHEDULED)

    def _cancel_start(self) -> None:
        if self._start_task is not None:
            cancelled = self._timer.cancel(self._start_task)
            logger.info("Stop scheduled quiz start for quiz %s was successful: %s", self.quiz_id, cancelled)
            self._start_task = None

    def _cancel_end(self) -> None:
        if self._end_task is not None:
            cancelled = self._timer.cancel(self._end_task)
            logger.info("Stop scheduled quiz end for quiz %s was successful: %s", self.quiz_id, cancelled)
            self._end_task = None

    def _reload(self) -> QuizExercise:
        quiz = self._quiz_repository.find_by_id(self.quiz_id)
        if quiz is None:
            raise QuizNotFoundError(self.quiz_id)
        self._quiz_exercise = quiz
        return quiz

    # --- Timer callbacks ---

    def _start_quiz(self) -> None:
        try:
            with self._lock:
                self._start_task = None
                self._phase = QuizPhase.RUNNING
            self.schedule_end()
            quiz = self._quiz_repository.find_by_id_with_questions(self.quiz_id)
            if quiz is None:
                raise QuizNotFoundError(self.quiz_id)
            self._messaging.send_quiz_to_subscribers(quiz)
        except Exception:
            self._metrics.schedule_failures.labels(phase="start").inc()
            logger.exception("Could not start quiz %s", self.quiz_id)

    def process_cached_submissions(self) -> None:
        """Consolidate every cached submission once the quiz has ended.

        Never raises: the timer thread must stay available for other quizzes.
        """
        logger.debug("Process cached quiz submissions for quiz %s", self.quiz_id)
        try:
            start = time.perf_counter()
            quiz = self._quiz_repository.find_by_id_with_questions(self.quiz_id)
            if quiz is None:
                logger.info("Quiz %s was deleted, discarding %d cached submissions",
                            self.quiz_id, len(self._cache))
                self._cache.clear()
                return
            self._quiz_exercise = quiz
            if not quiz.is_ended(self._clock()):
                return

            with self._metrics.consolidation_duration.time():
                processed = self._consolidator.consolidate(quiz, self._cache, self._results)
            if processed > 0:
                logger.info("Processed %d submissions after %d ms in quiz %s",
                            processed, (time.perf_counter() - start) * 1000, quiz.title)

            with self._lock:
                self._end_task = None
                self._phase = QuizPhase.CONSOLIDATED
            self._flush_statistics()
        except Exception:
            self._metrics.schedule_failures.labels(phase="end").inc()
            logger.exception("Exception in quiz schedule for quiz %s", self.quiz_id)

    # --- Statistics ---

    def add_result_for_statistics(self, result: Result) -> None:
        """Queue a result for the statistics.

        Once no consolidation is pending, either because it already ran or
        because the quiz ended before it was ever scheduled here, the result is
        flushed right away. A failed flush keeps the results queued.
        """
        self._results.add(result)
        if not self._consolidation_pending():
            try:
                self._flush_statistics()
            except Exception:
                self._metrics.schedule_failures.labels(phase="statistics").inc()
                logger.exception("Could not update statistics of quiz %s", self.quiz_id)

    def _consolidation_pending(self) -> bool:
        with self._lock:
            if self._phase is QuizPhase.CONSOLIDATED:
                return False
            return self._end_task is not None or not self._quiz_exercise.is_ended(self._clock())

    def _flush_statistics(self) -> None:
        quiz = self._quiz_repository.find_by_id_with_questions_and_statistics(self.quiz_id)
        if quiz is None:
            raise QuizNotFoundError(self.quiz_id)
        results = self._results.drain()
        try:
            self._statistics.update_statistics(results, quiz)
        except Exception:
            self._results.restore(results)
            raise
