"""Wiring of repositories, schedules and the submission gateway shared by API and tests."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from quiz_live.constants.quiz_constants import QUIZ_GRACE_PERIOD_SECONDS
from quiz_live.core.errors import QuizNotFoundError
from quiz_live.core.metrics import QuizScheduleMetrics, default_metrics
from quiz_live.core.models import QuizExercise, StudentParticipation, utc_now
from quiz_live.core.services.messaging import MailboxMessagingTemplate
from quiz_live.core.services.quiz_repository import (
    ParticipationRepository,
    QuizRepository,
    ResultRepository,
    SubmissionRepository,
    SubmissionVersionRepository,
    UserRepository,
)
from quiz_live.core.services.quiz_schedule_service import QuizScheduleService
from quiz_live.core.services.quiz_statistics import QuizStatisticService
from quiz_live.core.services.quiz_submission_service import QuizSubmissionService
from quiz_live.core.services.quiz_timer import QuizTimer
from quiz_live.core.services.result_consolidator import ResultConsolidator

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade for quiz services: repositories, messaging, statistics, schedules and submissions."""

    def __init__(
        self,
        grace_period_seconds: int = QUIZ_GRACE_PERIOD_SECONDS,
        timer: QuizTimer | None = None,
        metrics: QuizScheduleMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.metrics = metrics or default_metrics()
        self.clock = clock

        # Persistence
        self.quiz_repository = QuizRepository()
        self.participation_repository = ParticipationRepository()
        self.submission_repository = SubmissionRepository()
        self.result_repository = ResultRepository()
        self.user_repository = UserRepository(auto_register=True)
        self.version_repository = SubmissionVersionRepository()

        # Collaborators
        self.messaging = MailboxMessagingTemplate()
        self.statistics = QuizStatisticService(self.quiz_repository)

        # Scheduling
        self.timer = timer or QuizTimer()
        consolidator = ResultConsolidator(
            participation_repository=self.participation_repository,
            submission_repository=self.submission_repository,
            result_repository=self.result_repository,
            user_repository=self.user_repository,
            messaging=self.messaging,
            metrics=self.metrics,
            clock=clock,
        )
        self.schedule_service = QuizScheduleService(
            timer=self.timer,
            quiz_repository=self.quiz_repository,
            messaging=self.messaging,
            statistics=self.statistics,
            consolidator=consolidator,
            grace_period_seconds=grace_period_seconds,
            metrics=self.metrics,
            clock=clock,
        )
        self.submission_service = QuizSubmissionService(
            schedule_service=self.schedule_service,
            quiz_repository=self.quiz_repository,
            participation_repository=self.participation_repository,
            submission_repository=self.submission_repository,
            result_repository=self.result_repository,
            version_service=self.version_repository,
            metrics=self.metrics,
            clock=clock,
        )

    # --- Lifecycle ---

    def start(self) -> None:
        self.schedule_service.start_schedule()

    def stop(self) -> None:
        self.schedule_service.stop_schedule()

    # --- Quiz administration ---

    def load_quiz(self, quiz: QuizExercise) -> QuizExercise:
        """Store a quiz and arm its schedule."""
        saved = self.quiz_repository.save(quiz)
        self.schedule_service.schedule_quiz_start(saved.id)
        logger.info("Loaded quiz %s (%s) with %d questions", saved.id, saved.title, len(saved.questions))
        return saved

    def update_quiz_dates(
        self,
        quiz_id: int,
        release_date: datetime | None,
        due_date: datetime | None,
        is_planned_to_start: bool,
    ) -> QuizExercise:
        """Edit the release window of a quiz and re-arm its timers."""
        quiz = self.quiz_repository.find_by_id_with_questions_and_statistics(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id)
        updated = self.quiz_repository.save(
            replace(
                quiz,
                release_date=release_date,
                due_date=due_date,
                is_planned_to_start=is_planned_to_start,
            )
        )
        # re-arms the end timer too when the quiz is already running
        self.schedule_service.schedule_quiz_start(quiz_id)
        return updated

    def delete_quiz(self, quiz_id: int) -> None:
        self.schedule_service.clear_quiz_data(quiz_id)
        self.quiz_repository.delete(quiz_id)
        logger.info("Deleted quiz %s", quiz_id)

    # --- Participations ---

    def get_or_create_participation(self, quiz: QuizExercise, login: str) -> StudentParticipation:
        participation = self.participation_repository.find_by_exercise_and_login(quiz.id, login)
        if participation is not None:
            return participation
        participation = StudentParticipation(
            participant=self.user_repository.find_by_login(login),
            exercise=quiz,
            initialization_date=self.clock(),
        )
        return self.participation_repository.save(participation)
