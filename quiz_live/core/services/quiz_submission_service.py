"""Validation and routing of quiz submissions for live, exam and practice mode."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from quiz_live.core.errors import (
    AlreadySubmittedError,
    ParticipationNotFoundError,
    QuizInactiveError,
    QuizNotFoundError,
)
from quiz_live.core.metrics import QuizScheduleMetrics, default_metrics
from quiz_live.core.models import (
    AssessmentType,
    QuizExercise,
    QuizSubmission,
    Result,
    StudentParticipation,
    SubmissionType,
    utc_now,
)
from quiz_live.core.protocols import (
    ParticipationRepositoryProtocol,
    QuizExerciseRepositoryProtocol,
    ResultRepositoryProtocol,
    SubmissionRepositoryProtocol,
    SubmissionVersionProtocol,
)
from quiz_live.core.scoring import calculate_and_update_scores
from quiz_live.core.services.quiz_schedule_service import QuizScheduleService

logger = logging.getLogger(__name__)


class QuizSubmissionService:
    """Entry point for submissions coming from the API layer."""

    def __init__(
        self,
        schedule_service: QuizScheduleService,
        quiz_repository: QuizExerciseRepositoryProtocol,
        participation_repository: ParticipationRepositoryProtocol,
        submission_repository: SubmissionRepositoryProtocol,
        result_repository: ResultRepositoryProtocol,
        version_service: SubmissionVersionProtocol,
        metrics: QuizScheduleMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._schedule_service = schedule_service
        self._quiz_repository = quiz_repository
        self._participation_repository = participation_repository
        self._submission_repository = submission_repository
        self._result_repository = result_repository
        self._version_service = version_service
        self._metrics = metrics or default_metrics()
        self._clock = clock

    def save_submission_for_live_mode(
        self,
        exercise_id: int,
        quiz_submission: QuizSubmission,
        login: str,
        submitted: bool,
    ) -> QuizSubmission:
        """Validate a live save/submit and store it in the quiz's submission cache.

        Raises:
            QuizNotFoundError: the quiz does not exist.
            QuizInactiveError: the live submission window is closed.
            AlreadySubmittedError: the participant has already submitted.
        """
        log_text = "submit quiz in live mode:" if submitted else "save quiz in live mode:"
        start = time.perf_counter_ns()

        quiz = self._schedule_service.get_quiz_exercise(exercise_id)
        if quiz is None:
            logger.info("Quiz %s not in schedule cache, fetching from repository", exercise_id)
            quiz = self._quiz_repository.find_by_id(exercise_id)
        if quiz is None:
            self._metrics.submissions_rejected.labels(reason="not_found").inc()
            raise QuizNotFoundError(exercise_id)

        now = self._clock()
        if not quiz.is_submission_allowed(now, self._schedule_service.grace_period_seconds):
            self._metrics.submissions_rejected.labels(reason="inactive").inc()
            raise QuizInactiveError(exercise_id)

        if self._has_already_submitted(exercise_id, login):
            self._metrics.submissions_rejected.labels(reason="already_submitted").inc()
            raise AlreadySubmittedError(exercise_id, login)

        for answer in quiz_submission.submitted_answers:
            answer.submission = quiz_submission

        if submitted:
            quiz_submission.submitted = True
            quiz_submission.type = SubmissionType.MANUAL
        quiz_submission.submission_date = now

        self._schedule_service.update_submission(exercise_id, login, quiz_submission)
        logger.info("%s Saved quiz submission for user %s in quiz %s after %d µs",
                    log_text, login, exercise_id, (time.perf_counter_ns() - start) // 1000)
        return quiz_submission

    def save_submission_for_exam_mode(
        self,
        quiz_exercise: QuizExercise,
        quiz_submission: QuizSubmission,
        login: str,
    ) -> QuizSubmission:
        """Persist an exam submission directly, bypassing the live cache."""
        quiz_submission.submitted = True
        quiz_submission.type = SubmissionType.MANUAL
        quiz_submission.submission_date = self._clock()

        participation = self._participation_repository.find_by_exercise_and_login(quiz_exercise.id, login)
        if participation is None:
            logger.warning("The participation for quiz exercise %s and user %s was not found",
                           quiz_exercise.id, login)
            raise ParticipationNotFoundError(quiz_exercise.id, login)

        quiz_submission.participation = participation
        # students must not be able to inject a result
        quiz_submission.results = []
        for answer in quiz_submission.submitted_answers:
            answer.submission = quiz_submission
        self._submission_repository.save(quiz_submission)

        try:
            self._version_service.save_version_for_individual(quiz_submission, login)
        except Exception:
            logger.exception("Quiz submission version could not be saved for user %s", login)

        logger.debug("submit exam quiz finished: %s", quiz_submission)
        return quiz_submission

    def submit_for_practice(
        self,
        quiz_submission: QuizSubmission,
        quiz_exercise: QuizExercise,
        participation: StudentParticipation,
    ) -> Result:
        """Grade a practice submission immediately and return its unrated result."""
        now = self._clock()
        quiz_submission.submitted = True
        quiz_submission.type = SubmissionType.MANUAL
        quiz_submission.submission_date = now
        calculate_and_update_scores(quiz_submission, quiz_exercise)
        quiz_submission = self._submission_repository.save(quiz_submission)

        result = Result(
            participation=participation,
            rated=False,
            assessment_type=AssessmentType.AUTOMATIC,
            completion_date=now,
        )
        result = self._result_repository.save(result)

        result.submission = quiz_submission
        result.evaluate_submission(quiz_exercise.max_score)
        quiz_submission.results.append(result)
        quiz_submission.participation = participation
        participation.results.append(result)
        participation.submissions.append(quiz_submission)

        self._submission_repository.save(quiz_submission)
        self._result_repository.save(result)
        self._participation_repository.save(participation)

        self._schedule_service.add_result_for_statistic_update(quiz_exercise.id, result)
        logger.debug("submit practice quiz finished: %s", quiz_submission)
        return result

    def _has_already_submitted(self, exercise_id: int, login: str) -> bool:
        participation = self._participation_repository.find_by_exercise_and_login(exercise_id, login)
        if participation is not None and participation.results:
            # the quiz is still live, so this can only be the live result
            result = participation.results[0]
            if result.submission is not None and result.submission.submitted:
                return True
        return self._schedule_service.get_quiz_submission(exercise_id, login).submitted
