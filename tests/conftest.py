"""Shared fixtures: a controllable clock, a manual timer and a sample quiz."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry

from quiz_live.core.metrics import QuizScheduleMetrics
from quiz_live.core.models import (
    AnswerOption,
    MultipleChoiceQuestion,
    MultipleChoiceSubmittedAnswer,
    QuizExercise,
    QuizSubmission,
    ShortAnswerQuestion,
    ShortAnswerSubmittedAnswer,
)
from quiz_live.core.quiz_manager import QuizManager

T0 = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


class MutableClock:
    """Clock whose current time only moves when a test advances it."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@dataclass
class ManualTask:
    callback: Callable[[], None]
    run_at: datetime
    name: str
    cancelled: bool = False
    fired: bool = False


@dataclass
class ManualTimer:
    """Timer stand-in that only runs callbacks when ``fire_due`` is called."""

    clock: MutableClock
    tasks: list[ManualTask] = field(default_factory=list)
    running: bool = False

    def start(self) -> None:
        self.running = True

    def shutdown(self, wait: bool = True) -> None:
        self.running = False

    def schedule(self, callback: Callable[[], None], run_at: datetime, name: str = "") -> ManualTask:
        task = ManualTask(callback=callback, run_at=run_at, name=name)
        self.tasks.append(task)
        return task

    def cancel(self, task: ManualTask) -> bool:
        if task.cancelled or task.fired:
            return False
        task.cancelled = True
        return True

    def pending(self) -> list[ManualTask]:
        return [task for task in self.tasks if not task.cancelled and not task.fired]

    def scheduled_count(self) -> int:
        return len(self.pending())

    def fire_due(self) -> int:
        """Run every pending task whose time has come, in run order."""
        fired = 0
        while True:
            due = sorted(
                (task for task in self.pending() if task.run_at <= self.clock()),
                key=lambda task: task.run_at,
            )
            if not due:
                return fired
            task = due[0]
            task.fired = True
            task.callback()
            fired += 1


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def timer(clock: MutableClock) -> ManualTimer:
    return ManualTimer(clock=clock)


@pytest.fixture
def metrics() -> QuizScheduleMetrics:
    return QuizScheduleMetrics(registry=CollectorRegistry())


@pytest.fixture
def manager(timer: ManualTimer, metrics: QuizScheduleMetrics, clock: MutableClock) -> Iterator[QuizManager]:
    quiz_manager = QuizManager(grace_period_seconds=180, timer=timer, metrics=metrics, clock=clock)
    quiz_manager.start()
    yield quiz_manager
    quiz_manager.stop()


def make_quiz(
    quiz_id: int = 1,
    release_in: timedelta | None = timedelta(minutes=5),
    duration: timedelta = timedelta(minutes=10),
    planned: bool = True,
) -> QuizExercise:
    """Two-question quiz worth 3 points in total."""
    release_date = T0 + release_in if release_in is not None else None
    return QuizExercise(
        id=quiz_id,
        title=f"Quiz {quiz_id}",
        release_date=release_date,
        due_date=release_date + duration if release_date is not None else None,
        is_planned_to_start=planned,
        questions=[
            MultipleChoiceQuestion(
                id=1,
                title="Addition",
                text="What is $2 + 2$?",
                answer_options=[
                    AnswerOption(id=1, text="3"),
                    AnswerOption(id=2, text="4", is_correct=True),
                    AnswerOption(id=3, text="22"),
                ],
                points=2.0,
                single_choice=True,
            ),
            ShortAnswerQuestion(
                id=2,
                title="Capital",
                text="The capital of France is [1].",
                solutions={1: ["Paris"]},
                points=1.0,
            ),
        ],
    )


def correct_submission() -> QuizSubmission:
    return QuizSubmission(
        submitted_answers=[
            MultipleChoiceSubmittedAnswer(question_id=1, selected_option_ids={2}),
            ShortAnswerSubmittedAnswer(question_id=2, spot_texts={1: "paris"}),
        ]
    )


def partial_submission() -> QuizSubmission:
    return QuizSubmission(
        submitted_answers=[
            MultipleChoiceSubmittedAnswer(question_id=1, selected_option_ids={1}),
            ShortAnswerSubmittedAnswer(question_id=2, spot_texts={1: "Paris"}),
        ]
    )
