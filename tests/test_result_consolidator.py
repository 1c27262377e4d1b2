from __future__ import annotations

import logging

import pytest

from conftest import T0, correct_submission, make_quiz, partial_submission
from quiz_live.core.models import InitializationState, QuizSubmission, SubmissionType
from quiz_live.core.services.messaging import MailboxMessagingTemplate
from quiz_live.core.services.quiz_repository import (
    ParticipationRepository,
    ResultRepository,
    SubmissionRepository,
    UserRepository,
)
from quiz_live.core.services.result_consolidator import ResultAccumulator, ResultConsolidator
from quiz_live.core.services.submission_cache import SubmissionCache


class FlakyParticipationRepository(ParticipationRepository):
    """Fails to persist the participation of one login."""

    def __init__(self, failing_login: str) -> None:
        super().__init__()
        self.failing_login = failing_login

    def save(self, participation):
        if participation.login == self.failing_login:
            raise RuntimeError("database unavailable")
        return super().save(participation)


@pytest.fixture
def messaging():
    return MailboxMessagingTemplate()


def _consolidator(participations, messaging, metrics):
    return ResultConsolidator(
        participation_repository=participations,
        submission_repository=SubmissionRepository(),
        result_repository=ResultRepository(),
        user_repository=UserRepository(auto_register=True),
        messaging=messaging,
        metrics=metrics,
        clock=lambda: T0,
    )


def test_consolidate_grades_and_persists_every_submission(messaging, metrics):
    participations = ParticipationRepository()
    consolidator = _consolidator(participations, messaging, metrics)
    quiz = make_quiz()
    cache = SubmissionCache()
    cache.upsert("alice", correct_submission())
    cache.upsert("bob", partial_submission())
    results = ResultAccumulator()

    processed = consolidator.consolidate(quiz, cache, results)

    assert processed == 2
    assert len(cache) == 0
    assert len(results) == 2
    alice = participations.find_by_exercise_and_login(quiz.id, "alice")
    assert alice.initialization_state is InitializationState.FINISHED
    submission = alice.submissions[0]
    assert submission.submitted is True
    assert submission.type is SubmissionType.TIMEOUT
    assert submission.submission_date == T0
    assert submission.score_in_points == 3.0
    assert submission.results[0] is alice.results[0]
    assert alice.results[0].completion_date == T0


def test_payload_sent_to_the_student_is_redacted(messaging, metrics):
    consolidator = _consolidator(ParticipationRepository(), messaging, metrics)
    cache = SubmissionCache()
    cache.upsert("alice", correct_submission())

    consolidator.consolidate(make_quiz(), cache, ResultAccumulator())

    (notification,) = messaging.poll("alice")
    payload = notification.payload
    assert "participant" not in payload
    assert "submissions" not in payload
    assert "course_id" not in payload["exercise"]
    assert len(payload["results"]) == 1
    assert payload["results"][0]["submission"]["score_in_points"] == 3.0


def test_one_failing_participant_does_not_stop_the_rest(messaging, metrics, caplog):
    participations = FlakyParticipationRepository(failing_login="mallory")
    consolidator = _consolidator(participations, messaging, metrics)
    quiz = make_quiz()
    cache = SubmissionCache()
    for login in ("alice", "mallory", "bob"):
        cache.upsert(login, correct_submission())
    results = ResultAccumulator()

    with caplog.at_level(logging.ERROR):
        processed = consolidator.consolidate(quiz, cache, results)

    assert processed == 2
    assert len(cache) == 0
    assert participations.find_by_exercise_and_login(quiz.id, "alice") is not None
    assert participations.find_by_exercise_and_login(quiz.id, "bob") is not None
    assert messaging.poll("mallory") == []
    assert metrics.registry.get_sample_value("quiz_consolidation_failures_total") == 1
    assert "mallory" in caplog.text


def test_empty_submission_gets_a_zero_result(messaging, metrics):
    participations = ParticipationRepository()
    consolidator = _consolidator(participations, messaging, metrics)
    cache = SubmissionCache()
    cache.upsert("alice", QuizSubmission())

    consolidator.consolidate(make_quiz(), cache, ResultAccumulator())

    result = participations.find_by_exercise_and_login(1, "alice").results[0]
    assert result.score == 0.0
    assert result.successful is False


def test_accumulator_drain_hands_out_each_result_once():
    accumulator = ResultAccumulator()
    accumulator.add(object())
    accumulator.add(object())

    assert len(accumulator.drain()) == 2
    assert accumulator.drain() == []
