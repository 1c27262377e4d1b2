"""FastAPI server that exposes the live-quiz submission endpoints."""

from __future__ import annotations

from datetime import datetime
from threading import Thread
from typing import Annotated, Any, Literal, Union

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from quiz_live.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, LOGIN_HEADER
from quiz_live.core.errors import (
    AlreadySubmittedError,
    ParticipationNotFoundError,
    QuizInactiveError,
    QuizNotFoundError,
    QuizSubmissionError,
)
from quiz_live.core.messages import (
    ResultPayload,
    SubmissionPayload,
    build_quiz_broadcast,
    build_result_payload,
    build_submission_payload,
)
from quiz_live.core.models import (
    MultipleChoiceSubmittedAnswer,
    QuizExercise,
    QuizSubmission,
    ShortAnswerSubmittedAnswer,
    SubmittedAnswer,
)
from quiz_live.core.quiz_manager import QuizManager


class MultipleChoiceAnswerBody(BaseModel):
    kind: Literal["multiple-choice"] = "multiple-choice"
    question_id: int
    selected_option_ids: list[int] = []


class ShortAnswerAnswerBody(BaseModel):
    kind: Literal["short-answer"]
    question_id: int
    spot_texts: dict[int, str] = {}


AnswerBody = Annotated[
    Union[MultipleChoiceAnswerBody, ShortAnswerAnswerBody],
    Field(discriminator="kind"),
]


class SubmissionBody(BaseModel):
    """Payload schema for saved or submitted quiz answers."""

    submitted_answers: list[AnswerBody] = []

    def to_submission(self) -> QuizSubmission:
        return QuizSubmission(submitted_answers=[_to_answer(answer) for answer in self.submitted_answers])


class QuizDatesBody(BaseModel):
    """Payload schema for editing the release window of a quiz."""

    release_date: datetime | None = None
    due_date: datetime | None = None
    is_planned_to_start: bool = True


def _to_answer(body: MultipleChoiceAnswerBody | ShortAnswerAnswerBody) -> SubmittedAnswer:
    if isinstance(body, ShortAnswerAnswerBody):
        return ShortAnswerSubmittedAnswer(question_id=body.question_id, spot_texts=dict(body.spot_texts))
    return MultipleChoiceSubmittedAnswer(question_id=body.question_id, selected_option_ids=set(body.selected_option_ids))


_ERROR_STATUS: dict[type[QuizSubmissionError], int] = {
    QuizInactiveError: 403,
    AlreadySubmittedError: 409,
    ParticipationNotFoundError: 404,
    QuizNotFoundError: 404,
}


def _http_error(exc: QuizSubmissionError) -> HTTPException:
    return HTTPException(status_code=_ERROR_STATUS.get(type(exc), 400), detail=str(exc))


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title="Live Quiz API", version="0.1.0")
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    def require_quiz(quiz_id: int, manager: QuizManager) -> QuizExercise:
        quiz = manager.quiz_repository.find_by_id_with_questions(quiz_id)
        if quiz is None:
            raise _http_error(QuizNotFoundError(quiz_id))
        return quiz

    @app.post("/quizzes/{quiz_id}/submissions/live")
    def save_live_submission(
        quiz_id: int,
        payload: SubmissionBody,
        submit: bool = False,
        login: str = Header(alias=LOGIN_HEADER),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> SubmissionPayload:
        try:
            submission = manager.submission_service.save_submission_for_live_mode(
                quiz_id, payload.to_submission(), login, submit
            )
        except QuizSubmissionError as exc:
            raise _http_error(exc) from exc
        return build_submission_payload(submission)

    @app.get("/quizzes/{quiz_id}/submission")
    def get_live_submission(
        quiz_id: int,
        login: str = Header(alias=LOGIN_HEADER),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> SubmissionPayload:
        submission = manager.schedule_service.get_quiz_submission(quiz_id, login)
        return build_submission_payload(submission)

    @app.post("/quizzes/{quiz_id}/submissions/practice")
    def submit_practice(
        quiz_id: int,
        payload: SubmissionBody,
        login: str = Header(alias=LOGIN_HEADER),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> ResultPayload:
        quiz = require_quiz(quiz_id, manager)
        now = manager.clock()
        # live submissions are still accepted during the grace period
        if not quiz.is_ended(now) or quiz.is_submission_allowed(now, manager.schedule_service.grace_period_seconds):
            raise HTTPException(status_code=403, detail="Practice is only possible after the quiz has ended")
        participation = manager.get_or_create_participation(quiz, login)
        result = manager.submission_service.submit_for_practice(payload.to_submission(), quiz, participation)
        return build_result_payload(result)

    @app.post("/quizzes/{quiz_id}/submissions/exam")
    def submit_exam(
        quiz_id: int,
        payload: SubmissionBody,
        login: str = Header(alias=LOGIN_HEADER),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> SubmissionPayload:
        quiz = require_quiz(quiz_id, manager)
        try:
            submission = manager.submission_service.save_submission_for_exam_mode(
                quiz, payload.to_submission(), login
            )
        except QuizSubmissionError as exc:
            raise _http_error(exc) from exc
        return build_submission_payload(submission)

    @app.put("/quizzes/{quiz_id}/dates")
    def update_quiz_dates(
        quiz_id: int,
        payload: QuizDatesBody,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, Any]:
        try:
            quiz = manager.update_quiz_dates(
                quiz_id, payload.release_date, payload.due_date, payload.is_planned_to_start
            )
        except QuizNotFoundError as exc:
            raise _http_error(exc) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        schedule = manager.schedule_service.get_schedule(quiz_id)
        return {
            "id": quiz.id,
            "release_date": quiz.release_date.isoformat() if quiz.release_date else None,
            "due_date": quiz.due_date.isoformat() if quiz.due_date else None,
            "phase": schedule.phase.name if schedule else None,
        }

    @app.delete("/quizzes/{quiz_id}", status_code=204)
    def delete_quiz(quiz_id: int, manager: QuizManager = Depends(quiz_manager_dep)) -> Response:
        manager.delete_quiz(quiz_id)
        return Response(status_code=204)

    @app.get("/quizzes/{quiz_id}/live")
    def get_live_quiz(quiz_id: int, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, Any]:
        broadcast = manager.messaging.latest_broadcast(quiz_id)
        if broadcast is not None:
            return broadcast.payload
        # quizzes loaded after their release date are never broadcast
        quiz = require_quiz(quiz_id, manager)
        if not quiz.has_started(manager.clock()):
            raise HTTPException(status_code=404, detail="The quiz has not started yet")
        return build_quiz_broadcast(quiz).model_dump(mode="json")

    @app.get("/quizzes/{quiz_id}/statistics")
    def get_statistics(quiz_id: int, manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, Any]]:
        require_quiz(quiz_id, manager)
        return [
            {"points": row.points, "rated": row.rated, "unrated": row.unrated}
            for row in manager.statistics.get_point_distribution(quiz_id)
        ]

    @app.get("/notifications")
    def poll_notifications(
        login: str = Header(alias=LOGIN_HEADER),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, Any]]:
        return [
            {"topic": message.topic, "payload": message.payload, "sent_at": message.sent_at.isoformat()}
            for message in manager.messaging.poll(login)
        ]

    @app.get("/metrics")
    def metrics(manager: QuizManager = Depends(quiz_manager_dep)) -> Response:
        return Response(content=generate_latest(manager.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    return app


def start_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return thread
