"""End-of-quiz conversion of cached submissions into graded, persisted results."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from threading import Lock

from quiz_live.constants.quiz_constants import PARTICIPATION_TOPIC_TEMPLATE
from quiz_live.core.messages import build_participation_payload
from quiz_live.core.metrics import QuizScheduleMetrics, default_metrics
from quiz_live.core.models import (
    AssessmentType,
    InitializationState,
    QuizExercise,
    QuizSubmission,
    Result,
    StudentParticipation,
    SubmissionType,
    utc_now,
)
from quiz_live.core.protocols import (
    MessagingProtocol,
    ParticipationRepositoryProtocol,
    ResultRepositoryProtocol,
    SubmissionRepositoryProtocol,
    UserRepositoryProtocol,
)
from quiz_live.core.scoring import calculate_and_update_scores
from quiz_live.core.services.submission_cache import SubmissionCache

logger = logging.getLogger(__name__)


class ResultAccumulator:
    """Results of one quiz waiting to be folded into its statistics."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._results: list[Result] = []

    def add(self, result: Result) -> None:
        with self._lock:
            self._results.append(result)

    def drain(self) -> list[Result]:
        with self._lock:
            results = self._results
            self._results = []
        return results

    def restore(self, results: list[Result]) -> None:
        """Put back results whose statistics update failed, ahead of newer ones."""
        with self._lock:
            self._results[:0] = results

    def snapshot(self) -> list[Result]:
        with self._lock:
            return list(self._results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)


class ResultConsolidator:
    """Grades and persists every cached submission of an ended quiz.

    A failure for one participant is logged and counted; the remaining
    participants are still processed.
    """

    def __init__(
        self,
        participation_repository: ParticipationRepositoryProtocol,
        submission_repository: SubmissionRepositoryProtocol,
        result_repository: ResultRepositoryProtocol,
        user_repository: UserRepositoryProtocol,
        messaging: MessagingProtocol,
        metrics: QuizScheduleMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._participation_repository = participation_repository
        self._submission_repository = submission_repository
        self._result_repository = result_repository
        self._user_repository = user_repository
        self._messaging = messaging
        self._metrics = metrics or default_metrics()
        self._clock = clock

    def consolidate(
        self,
        quiz: QuizExercise,
        cache: SubmissionCache,
        results: ResultAccumulator,
    ) -> int:
        """Drain the cache and return the number of participants processed."""
        counter = 0
        for login, submission in cache.drain():
            try:
                submission.submitted = True
                submission.type = SubmissionType.TIMEOUT
                submission.submission_date = self._clock()
                result = self._create_participation_with_result(quiz, login, submission)
            except Exception:
                self._metrics.consolidation_failures.inc()
                logger.exception(
                    "Could not consolidate the submission of %s in quiz %s", login, quiz.id
                )
                continue
            results.add(result)
            counter += 1
        self._metrics.submissions_consolidated.inc(counter)
        return counter

    def _create_participation_with_result(
        self,
        quiz: QuizExercise,
        login: str,
        submission: QuizSubmission,
    ) -> Result:
        participation = StudentParticipation(
            participant=self._user_repository.find_by_login(login),
            exercise=quiz,
            initialization_date=submission.submission_date,
        )

        result = Result(
            participation=participation,
            submission=submission,
            rated=True,
            assessment_type=AssessmentType.AUTOMATIC,
            completion_date=submission.submission_date,
        )

        calculate_and_update_scores(submission, quiz)
        result.evaluate_submission(quiz.max_score)

        participation.results.append(result)
        participation.submissions.append(submission)
        participation.initialization_state = InitializationState.FINISHED
        submission.participation = participation
        submission.results.append(result)

        participation = self._participation_repository.save(participation)
        self._submission_repository.save(submission)
        result = self._result_repository.save(result)

        self._send_result_to_user(login, quiz, participation)
        return result

    def _send_result_to_user(
        self,
        login: str,
        quiz: QuizExercise,
        participation: StudentParticipation,
    ) -> None:
        payload = build_participation_payload(participation).model_dump(mode="json")
        topic = PARTICIPATION_TOPIC_TEMPLATE.format(quiz_id=quiz.id)
        self._messaging.send_to_user(login, topic, payload)
