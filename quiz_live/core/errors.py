"""Errors raised when a quiz submission or schedule request cannot be served."""

from __future__ import annotations


class QuizSubmissionError(Exception):
    """Base class for errors reported back to the submitting client."""


class QuizInactiveError(QuizSubmissionError):
    """Raised when the live submission window of a quiz is closed."""

    def __init__(self, quiz_id: int) -> None:
        super().__init__("The quiz is not active")
        self.quiz_id = quiz_id


class AlreadySubmittedError(QuizSubmissionError):
    """Raised when a participant submits a quiz they have already submitted."""

    def __init__(self, quiz_id: int, login: str) -> None:
        super().__init__("You have already submitted the quiz")
        self.quiz_id = quiz_id
        self.login = login


class ParticipationNotFoundError(QuizSubmissionError):
    """Raised when an exam-mode submission has no participation to attach to."""

    def __init__(self, quiz_id: int, login: str) -> None:
        super().__init__(f"Participation for quiz exercise {quiz_id} and user {login} was not found")
        self.quiz_id = quiz_id
        self.login = login


class QuizNotFoundError(QuizSubmissionError):
    """Raised when a quiz disappeared between scheduling and use."""

    def __init__(self, quiz_id: int) -> None:
        super().__init__(f"Quiz exercise {quiz_id} does not exist")
        self.quiz_id = quiz_id
