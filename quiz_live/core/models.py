"""Domain models for live quizzes, submissions and their graded results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from quiz_live.constants.quiz_constants import QUIZ_GRACE_PERIOD_SECONDS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionType(Enum):
    MANUAL = "MANUAL"
    TIMEOUT = "TIMEOUT"


class AssessmentType(Enum):
    AUTOMATIC = "AUTOMATIC"
    MANUAL = "MANUAL"


class InitializationState(Enum):
    INITIALIZED = "INITIALIZED"
    FINISHED = "FINISHED"


class ScoringType(Enum):
    ALL_OR_NOTHING = "ALL_OR_NOTHING"
    PROPORTIONAL_WITH_PENALTY = "PROPORTIONAL_WITH_PENALTY"


@dataclass(slots=True)
class User:
    login: str
    id: int | None = None
    name: str | None = None


@dataclass(slots=True)
class AnswerOption:
    id: int
    text: str
    is_correct: bool = False


@dataclass(slots=True)
class MultipleChoiceQuestion:
    """Question answered by selecting one or more answer options."""

    id: int
    title: str
    text: str
    answer_options: list[AnswerOption]
    points: float = 1.0
    single_choice: bool = False
    scoring_type: ScoringType = ScoringType.ALL_OR_NOTHING


@dataclass(slots=True)
class ShortAnswerQuestion:
    """Question answered by typing text into numbered spots.

    ``solutions`` maps each spot id to the texts accepted for that spot.
    """

    id: int
    title: str
    text: str
    solutions: dict[int, list[str]]
    points: float = 1.0
    case_sensitive: bool = False
    scoring_type: ScoringType = ScoringType.ALL_OR_NOTHING


QuizQuestion = MultipleChoiceQuestion | ShortAnswerQuestion


@dataclass(slots=True)
class MultipleChoiceSubmittedAnswer:
    question_id: int
    selected_option_ids: set[int] = field(default_factory=set)
    score_in_points: float | None = None
    submission: QuizSubmission | None = field(default=None, repr=False, compare=False)


@dataclass(slots=True)
class ShortAnswerSubmittedAnswer:
    question_id: int
    spot_texts: dict[int, str] = field(default_factory=dict)
    score_in_points: float | None = None
    submission: QuizSubmission | None = field(default=None, repr=False, compare=False)


SubmittedAnswer = MultipleChoiceSubmittedAnswer | ShortAnswerSubmittedAnswer


@dataclass(slots=True)
class QuizSubmission:
    """Working copy of one participant's answers for a quiz."""

    submitted_answers: list[SubmittedAnswer] = field(default_factory=list)
    id: int | None = None
    submitted: bool = False
    type: SubmissionType | None = None
    submission_date: datetime | None = None
    score_in_points: float | None = None
    participation: StudentParticipation | None = field(default=None, repr=False, compare=False)
    results: list[Result] = field(default_factory=list, repr=False, compare=False)

    def answer_for(self, question_id: int) -> SubmittedAnswer | None:
        return next((a for a in self.submitted_answers if a.question_id == question_id), None)


@dataclass(slots=True)
class QuizPointStatistic:
    """Number of rated/unrated results that reached a given score."""

    rated_counts: dict[float, int] = field(default_factory=dict)
    unrated_counts: dict[float, int] = field(default_factory=dict)
    participants_rated: int = 0
    participants_unrated: int = 0


@dataclass(slots=True)
class QuestionStatistic:
    question_id: int
    rated_correct: int = 0
    unrated_correct: int = 0


@dataclass(slots=True)
class QuizStatistic:
    point_statistic: QuizPointStatistic = field(default_factory=QuizPointStatistic)
    question_statistics: dict[int, QuestionStatistic] = field(default_factory=dict)


@dataclass(slots=True)
class QuizExercise:
    """A scheduled quiz run with its release window and questions."""

    id: int
    title: str
    release_date: datetime | None = None
    due_date: datetime | None = None
    is_planned_to_start: bool = False
    questions: list[QuizQuestion] = field(default_factory=list)
    course_id: int | None = None
    statistics: QuizStatistic | None = None

    def has_started(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return self.is_planned_to_start and self.release_date is not None and self.release_date <= now

    def is_submission_allowed(
        self,
        now: datetime | None = None,
        grace_period_seconds: int = QUIZ_GRACE_PERIOD_SECONDS,
    ) -> bool:
        now = now or utc_now()
        if not self.has_started(now) or self.due_date is None:
            return False
        return now < self.due_date + timedelta(seconds=grace_period_seconds)

    def is_ended(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return self.due_date is not None and self.due_date <= now

    @property
    def max_score(self) -> float:
        return sum(question.points for question in self.questions)

    def question_by_id(self, question_id: int) -> QuizQuestion | None:
        return next((q for q in self.questions if q.id == question_id), None)


@dataclass(slots=True)
class Result:
    """Graded outcome of one submission."""

    id: int | None = None
    participation: StudentParticipation | None = field(default=None, repr=False, compare=False)
    submission: QuizSubmission | None = field(default=None, repr=False, compare=False)
    rated: bool = False
    assessment_type: AssessmentType | None = None
    completion_date: datetime | None = None
    score: float | None = None
    successful: bool = False

    def evaluate_submission(self, max_score: float) -> None:
        """Derive the percentage score from the attached submission's points."""
        if self.submission is None or self.submission.score_in_points is None:
            raise ValueError("Result has no graded submission to evaluate.")
        if max_score <= 0:
            self.score = 0.0
        else:
            self.score = round(self.submission.score_in_points / max_score * 100, 2)
        self.successful = self.score >= 100


@dataclass(slots=True)
class StudentParticipation:
    id: int | None = None
    participant: User | None = None
    exercise: QuizExercise | None = field(default=None, repr=False)
    initialization_state: InitializationState = InitializationState.INITIALIZED
    initialization_date: datetime | None = None
    results: list[Result] = field(default_factory=list, repr=False)
    submissions: list[QuizSubmission] = field(default_factory=list, repr=False)

    @property
    def login(self) -> str | None:
        return self.participant.login if self.participant else None
