from __future__ import annotations

from conftest import correct_submission, make_quiz, partial_submission
from quiz_live.core.models import QuizSubmission, Result
from quiz_live.core.scoring import calculate_and_update_scores
from quiz_live.core.services.quiz_repository import QuizRepository
from quiz_live.core.services.quiz_statistics import QuizStatisticService


def _graded_result(quiz, submission, rated=True):
    calculate_and_update_scores(submission, quiz)
    return Result(submission=submission, rated=rated)


def test_update_statistics_counts_points_and_correct_questions():
    repository = QuizRepository()
    quiz = repository.save(make_quiz())
    service = QuizStatisticService(repository)
    results = [
        _graded_result(quiz, correct_submission()),
        _graded_result(quiz, partial_submission()),
        _graded_result(quiz, correct_submission(), rated=False),
    ]

    service.update_statistics(results, repository.find_by_id_with_questions_and_statistics(quiz.id))

    stored = repository.find_by_id_with_questions_and_statistics(quiz.id).statistics
    assert stored.point_statistic.participants_rated == 2
    assert stored.point_statistic.participants_unrated == 1
    assert stored.question_statistics[1].rated_correct == 1
    assert stored.question_statistics[1].unrated_correct == 1
    assert stored.question_statistics[2].rated_correct == 2
    rows = service.get_point_distribution(quiz.id)
    assert [(row.points, row.rated, row.unrated) for row in rows] == [(1.0, 1, 0), (3.0, 1, 1)]


def test_statistics_accumulate_across_updates():
    repository = QuizRepository()
    quiz = repository.save(make_quiz())
    service = QuizStatisticService(repository)

    for _ in range(2):
        current = repository.find_by_id_with_questions_and_statistics(quiz.id)
        service.update_statistics([_graded_result(current, correct_submission())], current)

    rows = service.get_point_distribution(quiz.id)
    assert [(row.points, row.rated) for row in rows] == [(3.0, 2)]


def test_ungraded_results_are_skipped():
    repository = QuizRepository()
    quiz = repository.save(make_quiz())
    service = QuizStatisticService(repository)

    service.update_statistics([Result(submission=QuizSubmission()), Result()], quiz)

    assert service.get_point_distribution(quiz.id) == []


def test_point_distribution_of_unknown_quiz_is_empty():
    assert QuizStatisticService(QuizRepository()).get_point_distribution(5) == []
