"""Wire payloads pushed to clients.

Two payloads leave the core: the filtered quiz sent to subscribers when a
quiz starts, and the redacted participation sent to each student once their
submission has been consolidated. Both are built from domain objects here so
the answer key and unrelated course data never reach a client.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from quiz_live.core.markdown_math_renderer import renderer
from quiz_live.core.models import (
    InitializationState,
    MultipleChoiceQuestion,
    MultipleChoiceSubmittedAnswer,
    QuizExercise,
    QuizQuestion,
    QuizSubmission,
    Result,
    ShortAnswerQuestion,
    ShortAnswerSubmittedAnswer,
    StudentParticipation,
    SubmittedAnswer,
)


class AnswerOptionPayload(BaseModel):
    id: int
    text_html: str


class MultipleChoiceQuestionPayload(BaseModel):
    kind: Literal["multiple-choice"] = "multiple-choice"
    id: int
    title: str
    text_html: str
    points: float
    single_choice: bool
    answer_options: list[AnswerOptionPayload]


class ShortAnswerQuestionPayload(BaseModel):
    kind: Literal["short-answer"] = "short-answer"
    id: int
    title: str
    text_html: str
    points: float
    spot_ids: list[int]


QuestionPayload = Annotated[
    Union[MultipleChoiceQuestionPayload, ShortAnswerQuestionPayload],
    Field(discriminator="kind"),
]


class QuizBroadcast(BaseModel):
    """Quiz content as shown to students; carries no answer key."""

    id: int
    title: str
    release_date: datetime | None
    due_date: datetime | None
    questions: list[QuestionPayload]


class MultipleChoiceAnswerPayload(BaseModel):
    kind: Literal["multiple-choice"] = "multiple-choice"
    question_id: int
    selected_option_ids: list[int]
    score_in_points: float | None


class ShortAnswerAnswerPayload(BaseModel):
    kind: Literal["short-answer"] = "short-answer"
    question_id: int
    spot_texts: dict[int, str]
    score_in_points: float | None


AnswerPayload = Annotated[
    Union[MultipleChoiceAnswerPayload, ShortAnswerAnswerPayload],
    Field(discriminator="kind"),
]


class SubmissionPayload(BaseModel):
    id: int | None
    submitted: bool
    type: str | None
    submission_date: datetime | None
    score_in_points: float | None
    submitted_answers: list[AnswerPayload]


class ResultPayload(BaseModel):
    id: int | None
    score: float | None
    successful: bool
    rated: bool
    assessment_type: str | None
    completion_date: datetime | None
    submission: SubmissionPayload | None


class ExerciseSummaryPayload(BaseModel):
    id: int
    title: str
    release_date: datetime | None
    due_date: datetime | None


class ParticipationPayload(BaseModel):
    """Participation as sent to its student: one result, no course or roster data."""

    id: int | None
    initialization_state: InitializationState
    initialization_date: datetime | None
    exercise: ExerciseSummaryPayload | None
    results: list[ResultPayload]


def build_quiz_broadcast(quiz: QuizExercise) -> QuizBroadcast:
    return QuizBroadcast(
        id=quiz.id,
        title=quiz.title,
        release_date=quiz.release_date,
        due_date=quiz.due_date,
        questions=[_question_payload(question) for question in quiz.questions],
    )


def _question_payload(question: QuizQuestion) -> QuestionPayload:
    match question:
        case MultipleChoiceQuestion():
            return MultipleChoiceQuestionPayload(
                id=question.id,
                title=question.title,
                text_html=renderer.render_fragment(question.text),
                points=question.points,
                single_choice=question.single_choice,
                answer_options=[
                    AnswerOptionPayload(id=option.id, text_html=renderer.render_inline(option.text))
                    for option in question.answer_options
                ],
            )
        case ShortAnswerQuestion():
            return ShortAnswerQuestionPayload(
                id=question.id,
                title=question.title,
                text_html=renderer.render_fragment(question.text),
                points=question.points,
                spot_ids=sorted(question.solutions),
            )
    raise TypeError(f"Unsupported question type: {type(question).__name__}")


def build_participation_payload(participation: StudentParticipation) -> ParticipationPayload:
    """Redact a freshly consolidated participation before it is pushed to its student.

    The course reference, the participant and the raw submissions list are
    dropped. Only the first result is kept, and its answers refer to their
    questions by id since the client already holds the question content.
    """
    exercise = participation.exercise
    results = participation.results[:1]
    return ParticipationPayload(
        id=participation.id,
        initialization_state=participation.initialization_state,
        initialization_date=participation.initialization_date,
        exercise=(
            ExerciseSummaryPayload(
                id=exercise.id,
                title=exercise.title,
                release_date=exercise.release_date,
                due_date=exercise.due_date,
            )
            if exercise is not None
            else None
        ),
        results=[build_result_payload(result) for result in results],
    )


def build_result_payload(result: Result) -> ResultPayload:
    return ResultPayload(
        id=result.id,
        score=result.score,
        successful=result.successful,
        rated=result.rated,
        assessment_type=result.assessment_type.value if result.assessment_type else None,
        completion_date=result.completion_date,
        submission=build_submission_payload(result.submission) if result.submission else None,
    )


def build_submission_payload(submission: QuizSubmission) -> SubmissionPayload:
    return SubmissionPayload(
        id=submission.id,
        submitted=submission.submitted,
        type=submission.type.value if submission.type else None,
        submission_date=submission.submission_date,
        score_in_points=submission.score_in_points,
        submitted_answers=[_answer_payload(answer) for answer in submission.submitted_answers],
    )


def _answer_payload(answer: SubmittedAnswer) -> AnswerPayload:
    match answer:
        case MultipleChoiceSubmittedAnswer():
            return MultipleChoiceAnswerPayload(
                question_id=answer.question_id,
                selected_option_ids=sorted(answer.selected_option_ids),
                score_in_points=answer.score_in_points,
            )
        case ShortAnswerSubmittedAnswer():
            return ShortAnswerAnswerPayload(
                question_id=answer.question_id,
                spot_texts=dict(answer.spot_texts),
                score_in_points=answer.score_in_points,
            )
    raise TypeError(f"Unsupported submitted answer type: {type(answer).__name__}")
