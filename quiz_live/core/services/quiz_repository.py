"""In-memory persistence for quizzes, participations, submissions and results."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from itertools import count
from threading import Lock

from quiz_live.core.models import (
    MultipleChoiceQuestion,
    MultipleChoiceSubmittedAnswer,
    QuizExercise,
    QuizQuestion,
    QuizStatistic,
    QuizSubmission,
    Result,
    ShortAnswerQuestion,
    ShortAnswerSubmittedAnswer,
    StudentParticipation,
    SubmittedAnswer,
    User,
    utc_now,
)


class QuizRepository:
    """Stores quiz exercises and hands out copies at the requested detail level."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._quizzes: dict[int, QuizExercise] = {}

    def save(self, quiz: QuizExercise) -> QuizExercise:
        """Validate and store a quiz, replacing any quiz with the same id."""
        self._validate(quiz)
        with self._lock:
            self._quizzes[quiz.id] = quiz
        return quiz

    def delete(self, quiz_id: int) -> None:
        with self._lock:
            self._quizzes.pop(quiz_id, None)

    def find_by_id(self, quiz_id: int) -> QuizExercise | None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            return None
        return replace(quiz, questions=[], statistics=None)

    def find_by_id_with_questions(self, quiz_id: int) -> QuizExercise | None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            return None
        return replace(quiz, questions=list(quiz.questions), statistics=None)

    def find_by_id_with_questions_and_statistics(self, quiz_id: int) -> QuizExercise | None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            return None
        return replace(quiz, questions=list(quiz.questions))

    def find_all_planned_to_start(self) -> list[QuizExercise]:
        with self._lock:
            planned = [quiz for quiz in self._quizzes.values() if quiz.is_planned_to_start]
        return [replace(quiz, questions=[], statistics=None) for quiz in planned]

    def save_statistics(self, quiz_id: int, statistics: QuizStatistic) -> None:
        """Attach statistics to the stored quiz without touching its dates or questions."""
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
            if quiz is not None:
                quiz.statistics = statistics

    def _validate(self, quiz: QuizExercise) -> None:
        if not quiz.title.strip():
            raise ValueError("Quiz title must not be empty.")
        if quiz.release_date and quiz.due_date and quiz.due_date <= quiz.release_date:
            raise ValueError("Quiz due date must be after its release date.")
        seen_ids: set[int] = set()
        for question in quiz.questions:
            if question.id in seen_ids:
                raise ValueError(f"Duplicate question id {question.id}.")
            seen_ids.add(question.id)
            self._validate_question(question)

    @staticmethod
    def _validate_question(question: QuizQuestion) -> None:
        if question.points <= 0:
            raise ValueError("Question points must be positive.")
        match question:
            case MultipleChoiceQuestion():
                if not question.answer_options:
                    raise ValueError("A multiple choice question needs at least one answer option.")
                correct = sum(1 for option in question.answer_options if option.is_correct)
                if question.single_choice and correct != 1:
                    raise ValueError("A single choice question needs exactly one correct option.")
            case ShortAnswerQuestion():
                if not question.solutions:
                    raise ValueError("A short answer question needs at least one spot.")
                if any(not accepted for accepted in question.solutions.values()):
                    raise ValueError("Every spot needs at least one accepted solution.")


class ParticipationRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._ids = count(1)
        self._participations: dict[int, StudentParticipation] = {}
        self._by_exercise_and_login: dict[tuple[int, str], int] = {}

    def save(self, participation: StudentParticipation) -> StudentParticipation:
        with self._lock:
            if participation.id is None:
                participation.id = next(self._ids)
            self._participations[participation.id] = participation
            if participation.exercise is not None and participation.login:
                key = (participation.exercise.id, participation.login)
                self._by_exercise_and_login[key] = participation.id
        return participation

    def find_by_exercise_and_login(self, quiz_id: int, login: str) -> StudentParticipation | None:
        with self._lock:
            participation_id = self._by_exercise_and_login.get((quiz_id, login))
            if participation_id is None:
                return None
            return self._participations[participation_id]


class SubmissionRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._ids = count(1)
        self._submissions: dict[int, QuizSubmission] = {}

    def save(self, submission: QuizSubmission) -> QuizSubmission:
        with self._lock:
            if submission.id is None:
                submission.id = next(self._ids)
            self._submissions[submission.id] = submission
        return submission

    def find_by_id(self, submission_id: int) -> QuizSubmission | None:
        with self._lock:
            return self._submissions.get(submission_id)


class ResultRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._ids = count(1)
        self._results: dict[int, Result] = {}

    def save(self, result: Result) -> Result:
        with self._lock:
            if result.id is None:
                result.id = next(self._ids)
            self._results[result.id] = result
        return result


class UserRepository:
    """User lookup; unknown logins are registered on first lookup when ``auto_register`` is set."""

    def __init__(self, auto_register: bool = False) -> None:
        self._lock = Lock()
        self._ids = count(1)
        self._users: dict[str, User] = {}
        self._auto_register = auto_register

    def save(self, user: User) -> User:
        with self._lock:
            if user.id is None:
                user.id = next(self._ids)
            self._users[user.login] = user
        return user

    def find_by_login(self, login: str) -> User | None:
        with self._lock:
            user = self._users.get(login)
        if user is None and self._auto_register and login:
            return self.save(User(login=login))
        return user


@dataclass(slots=True)
class SubmissionVersion:
    login: str
    submission_id: int | None
    content: QuizSubmission
    created_at: datetime


class SubmissionVersionRepository:
    """Keeps a frozen copy of every exam-mode submission a student saves."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._versions: list[SubmissionVersion] = []

    def save_version_for_individual(self, submission: QuizSubmission, login: str) -> None:
        frozen = QuizSubmission(
            submitted_answers=[_freeze_answer(answer) for answer in submission.submitted_answers],
            id=submission.id,
            submitted=submission.submitted,
            type=submission.type,
            submission_date=submission.submission_date,
        )
        for answer in frozen.submitted_answers:
            answer.submission = frozen
        version = SubmissionVersion(
            login=login,
            submission_id=submission.id,
            content=frozen,
            created_at=utc_now(),
        )
        with self._lock:
            self._versions.append(version)

    def versions_for(self, login: str) -> list[SubmissionVersion]:
        with self._lock:
            return [v for v in self._versions if v.login == login]


def _freeze_answer(answer: SubmittedAnswer) -> SubmittedAnswer:
    match answer:
        case MultipleChoiceSubmittedAnswer():
            return replace(answer, selected_option_ids=set(answer.selected_option_ids), submission=None)
        case ShortAnswerSubmittedAnswer():
            return replace(answer, spot_texts=dict(answer.spot_texts), submission=None)
    raise TypeError(f"Unsupported submitted answer type: {type(answer).__name__}")
