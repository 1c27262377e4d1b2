"""Utilities for importing scheduled quizzes from a human-friendly text file.

File format: a header block followed by question blocks, separated by lines
containing only '---'.

    TITLE: Week 3 check-in
    ID: 7
    COURSE: 3                         (optional)
    RELEASE: 2026-10-19T10:00:00Z     (ISO 8601, optional)
    DUE: 2026-10-19T10:10:00Z         (ISO 8601, optional)
    PLANNED: yes|no                   (optional, default no)
    ---
    Q: What is $2 + 2$?               (multiple choice, markdown + LaTeX)
    A: 3
    B: 4
    C: 22
    CORRECT: B                        (one or more letters, comma separated)
    POINTS: 2                         (optional, default 1)
    SINGLE: yes                       (optional)
    SCORING: PROPORTIONAL_WITH_PENALTY  (optional)
    ---
    S: The capital of France is [1].  (short answer)
    SPOT 1: Paris | Paname            (accepted texts, '|' separated)
    CASE: yes                         (optional, case sensitive matching)

Question lines that follow Q:/S: without a marker continue the question text.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from quiz_live.core.models import (
    AnswerOption,
    MultipleChoiceQuestion,
    QuizExercise,
    QuizQuestion,
    ScoringType,
    ShortAnswerQuestion,
)


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for an imported quiz and where it came from."""

    source_path: Path
    quiz: QuizExercise


_OPTION_LETTERS = "ABCDEFGH"
_TRUE_VALUES = {"yes", "true", "1"}
_FALSE_VALUES = {"no", "false", "0"}


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    quiz = parse_quiz_text(text)
    return ImportedQuiz(source_path=file_path, quiz=quiz)


def parse_quiz_text(text: str) -> QuizExercise:
    blocks = _split_blocks(text)
    if not blocks:
        raise QuizImportError("Quiz file is empty.")
    quiz = _parse_header(blocks[0])
    for position, block in enumerate(blocks[1:], start=1):
        quiz.questions.append(_parse_question(block, question_id=position))
    if not quiz.questions:
        raise QuizImportError("Quiz file did not contain any questions.")
    return quiz


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        if raw_line.strip() == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if raw_line.strip():
            current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return blocks


def _parse_header(block: str) -> QuizExercise:
    fields: dict[str, str] = {}
    for raw_line in block.splitlines():
        key, separator, value = raw_line.partition(":")
        if not separator:
            raise QuizImportError(f"Header line must look like 'KEY: value': '{raw_line.strip()}'.")
        fields[key.strip().upper()] = value.strip()

    title = fields.get("TITLE", "")
    if not title:
        raise QuizImportError("Quiz header must define a TITLE.")
    return QuizExercise(
        id=_parse_int(fields.get("ID"), "ID", default=1),
        title=title,
        course_id=_parse_int(fields.get("COURSE"), "COURSE", default=None),
        release_date=_parse_datetime(fields.get("RELEASE"), "RELEASE"),
        due_date=_parse_datetime(fields.get("DUE"), "DUE"),
        is_planned_to_start=_parse_bool(fields.get("PLANNED"), "PLANNED", default=False),
    )


def _parse_question(block: str, question_id: int) -> QuizQuestion:
    kind: str | None = None
    question_lines: list[str] = []
    options: list[tuple[str, str]] = []
    correct_letters: set[str] = set()
    spots: dict[int, list[str]] = {}
    points = 1.0
    single_choice = False
    case_sensitive = False
    scoring_type = ScoringType.ALL_OR_NOTHING
    in_question_text = False

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()

        if upper.startswith(("Q:", "S:")):
            kind = upper[0]
            question_lines = [line[2:].strip()]
            in_question_text = True
            continue

        key, separator, value = line.partition(":")
        key = key.strip().upper()
        value = value.strip()

        if separator and key == "CORRECT":
            correct_letters = {letter.strip().upper() for letter in value.split(",") if letter.strip()}
        elif separator and key == "POINTS":
            points = _parse_float(value, "POINTS")
        elif separator and key == "SINGLE":
            single_choice = _parse_bool(value, "SINGLE", default=False)
        elif separator and key == "CASE":
            case_sensitive = _parse_bool(value, "CASE", default=False)
        elif separator and key == "SCORING":
            try:
                scoring_type = ScoringType[value.upper()]
            except KeyError as exc:
                raise QuizImportError(f"Unknown SCORING type '{value}'.") from exc
        elif separator and key.startswith("SPOT"):
            spot_id = _parse_int(key[4:].strip(), "SPOT", default=None)
            if spot_id is None:
                raise QuizImportError("SPOT must be followed by a number, e.g. 'SPOT 1:'.")
            spots[spot_id] = [text.strip() for text in value.split("|") if text.strip()]
        elif separator and len(key) == 1 and key in _OPTION_LETTERS:
            options.append((key, value))
        elif in_question_text:
            question_lines.append(line)
            continue
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")
        in_question_text = False

    question_text = "\n".join(question_lines).strip()
    if kind is None or not question_text:
        raise QuizImportError("Question text missing (Q: ... or S: ...)")

    title = question_text.splitlines()[0][:80]
    if kind == "S":
        if not spots:
            raise QuizImportError("A short answer question must define at least one SPOT.")
        return ShortAnswerQuestion(
            id=question_id,
            title=title,
            text=question_text,
            solutions=spots,
            points=points,
            case_sensitive=case_sensitive,
            scoring_type=scoring_type,
        )

    if not options:
        raise QuizImportError("A multiple choice question must define answer options (A: ...).")
    letters = [letter for letter, _ in options]
    unknown = correct_letters - set(letters)
    if unknown:
        raise QuizImportError(f"CORRECT refers to undefined options: {', '.join(sorted(unknown))}.")
    if not correct_letters:
        raise QuizImportError("A multiple choice question must define CORRECT.")
    return MultipleChoiceQuestion(
        id=question_id,
        title=title,
        text=question_text,
        answer_options=[
            AnswerOption(id=index, text=text, is_correct=letter in correct_letters)
            for index, (letter, text) in enumerate(options, start=1)
        ],
        points=points,
        single_choice=single_choice,
        scoring_type=scoring_type,
    )


def _parse_int(raw_value: str | None, name: str, default: int | None) -> int | None:
    if raw_value is None or raw_value == "":
        return default
    try:
        return int(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{name} must be an integer.") from exc


def _parse_float(raw_value: str, name: str) -> float:
    try:
        parsed = float(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{name} must be a number.") from exc
    if parsed <= 0:
        raise QuizImportError(f"{name} must be positive.")
    return parsed


def _parse_bool(raw_value: str | None, name: str, default: bool) -> bool:
    if raw_value is None or raw_value == "":
        return default
    lowered = raw_value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise QuizImportError(f"{name} must be yes or no.")


def _parse_datetime(raw_value: str | None, name: str) -> datetime | None:
    if not raw_value:
        return None
    try:
        parsed = datetime.fromisoformat(raw_value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise QuizImportError(f"{name} must be an ISO 8601 timestamp.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
