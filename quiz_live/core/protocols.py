"""Interfaces of the collaborators the live-quiz core depends on."""

from __future__ import annotations

from typing import Any, Protocol

from quiz_live.core.models import (
    QuizExercise,
    QuizSubmission,
    Result,
    StudentParticipation,
    User,
)


class QuizExerciseRepositoryProtocol(Protocol):
    """Quiz lookups with increasing levels of loaded detail."""

    def find_by_id(self, quiz_id: int) -> QuizExercise | None: ...

    def find_by_id_with_questions(self, quiz_id: int) -> QuizExercise | None: ...

    def find_by_id_with_questions_and_statistics(self, quiz_id: int) -> QuizExercise | None: ...

    def find_all_planned_to_start(self) -> list[QuizExercise]: ...

    def save(self, quiz: QuizExercise) -> QuizExercise: ...

    def delete(self, quiz_id: int) -> None: ...


class ParticipationRepositoryProtocol(Protocol):
    def save(self, participation: StudentParticipation) -> StudentParticipation: ...

    def find_by_exercise_and_login(self, quiz_id: int, login: str) -> StudentParticipation | None:
        """Return the participation in any state, with its results loaded."""
        ...


class SubmissionRepositoryProtocol(Protocol):
    def save(self, submission: QuizSubmission) -> QuizSubmission: ...


class ResultRepositoryProtocol(Protocol):
    def save(self, result: Result) -> Result: ...


class UserRepositoryProtocol(Protocol):
    def find_by_login(self, login: str) -> User | None: ...


class MessagingProtocol(Protocol):
    """Push channel towards connected clients."""

    def send_to_user(self, login: str, topic: str, payload: dict[str, Any]) -> None: ...

    def send_quiz_to_subscribers(self, quiz: QuizExercise) -> None: ...


class StatisticsProtocol(Protocol):
    def update_statistics(self, results: list[Result], quiz: QuizExercise) -> None: ...


class SubmissionVersionProtocol(Protocol):
    def save_version_for_individual(self, submission: QuizSubmission, login: str) -> None: ...
