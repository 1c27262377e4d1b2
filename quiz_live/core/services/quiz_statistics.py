"""Service for accumulating point and per-question statistics of quiz results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock

from quiz_live.core.models import QuestionStatistic, QuizExercise, QuizStatistic, Result
from quiz_live.core.scoring import is_answer_correct
from quiz_live.core.services.quiz_repository import QuizRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PointCountRow:
    """Immutable snapshot returned to consumers."""

    points: float
    rated: int
    unrated: int


class QuizStatisticService:
    """Folds finished results into the statistics stored with each quiz."""

    def __init__(self, quiz_repository: QuizRepository) -> None:
        self._lock = Lock()
        self._quiz_repository = quiz_repository

    def update_statistics(self, results: list[Result], quiz: QuizExercise) -> None:
        """Count each result once into the quiz's point and question statistics."""
        with self._lock:
            statistics = quiz.statistics or QuizStatistic()
            counted = 0
            for result in results:
                if result.submission is None or result.submission.score_in_points is None:
                    continue
                self._record_result(statistics, quiz, result)
                counted += 1
            quiz.statistics = statistics
            self._quiz_repository.save_statistics(quiz.id, statistics)
        logger.info("Updated statistics of quiz %s with %d results", quiz.id, counted)

    def get_point_distribution(self, quiz_id: int) -> list[PointCountRow]:
        """Return how many results reached each score, lowest score first."""
        quiz = self._quiz_repository.find_by_id_with_questions_and_statistics(quiz_id)
        if quiz is None or quiz.statistics is None:
            return []
        with self._lock:
            point_statistic = quiz.statistics.point_statistic
            points = sorted(set(point_statistic.rated_counts) | set(point_statistic.unrated_counts))
            return [
                PointCountRow(
                    points=value,
                    rated=point_statistic.rated_counts.get(value, 0),
                    unrated=point_statistic.unrated_counts.get(value, 0),
                )
                for value in points
            ]

    @staticmethod
    def _record_result(statistics: QuizStatistic, quiz: QuizExercise, result: Result) -> None:
        submission = result.submission
        points = submission.score_in_points
        point_statistic = statistics.point_statistic
        if result.rated:
            point_statistic.rated_counts[points] = point_statistic.rated_counts.get(points, 0) + 1
            point_statistic.participants_rated += 1
        else:
            point_statistic.unrated_counts[points] = point_statistic.unrated_counts.get(points, 0) + 1
            point_statistic.participants_unrated += 1

        for question in quiz.questions:
            entry = statistics.question_statistics.get(question.id)
            if entry is None:
                entry = QuestionStatistic(question_id=question.id)
                statistics.question_statistics[question.id] = entry
            if not is_answer_correct(question, submission.answer_for(question.id)):
                continue
            if result.rated:
                entry.rated_correct += 1
            else:
                entry.unrated_correct += 1
