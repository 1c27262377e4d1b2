"""Score calculation for quiz submissions against a quiz's answer key."""

from __future__ import annotations

from quiz_live.core.models import (
    MultipleChoiceQuestion,
    MultipleChoiceSubmittedAnswer,
    QuizExercise,
    QuizQuestion,
    QuizSubmission,
    ScoringType,
    ShortAnswerQuestion,
    ShortAnswerSubmittedAnswer,
    SubmittedAnswer,
)


def calculate_and_update_scores(submission: QuizSubmission, quiz: QuizExercise) -> float:
    """Grade every submitted answer and store the total on the submission.

    Questions without an answer contribute nothing. Answers for questions that
    are not part of the quiz are scored with zero.
    """
    total = 0.0
    for answer in submission.submitted_answers:
        question = quiz.question_by_id(answer.question_id)
        answer.score_in_points = score_for_answer(question, answer) if question else 0.0
        total += answer.score_in_points
    submission.score_in_points = round(total, 4)
    return submission.score_in_points


def score_for_answer(question: QuizQuestion, answer: SubmittedAnswer) -> float:
    match question, answer:
        case MultipleChoiceQuestion(), MultipleChoiceSubmittedAnswer():
            return _score_multiple_choice(question, answer)
        case ShortAnswerQuestion(), ShortAnswerSubmittedAnswer():
            return _score_short_answer(question, answer)
        case _:
            # answer kind does not match the question kind
            return 0.0


def is_answer_correct(question: QuizQuestion, answer: SubmittedAnswer | None) -> bool:
    if answer is None or answer.score_in_points is None:
        return False
    return answer.score_in_points >= question.points


def _score_multiple_choice(
    question: MultipleChoiceQuestion,
    answer: MultipleChoiceSubmittedAnswer,
) -> float:
    options = question.answer_options
    if not options:
        return 0.0
    correct_decisions = sum(
        1 for option in options if (option.id in answer.selected_option_ids) == option.is_correct
    )
    if question.single_choice or question.scoring_type is ScoringType.ALL_OR_NOTHING:
        return question.points if correct_decisions == len(options) else 0.0
    wrong_decisions = len(options) - correct_decisions
    return _proportional(question.points, correct_decisions, wrong_decisions, len(options))


def _score_short_answer(question: ShortAnswerQuestion, answer: ShortAnswerSubmittedAnswer) -> float:
    spots = question.solutions
    if not spots:
        return 0.0
    correct = 0
    wrong = 0
    for spot_id, accepted in spots.items():
        text = answer.spot_texts.get(spot_id, "").strip()
        if not text:
            continue
        if _matches(text, accepted, question.case_sensitive):
            correct += 1
        else:
            wrong += 1
    if question.scoring_type is ScoringType.ALL_OR_NOTHING:
        return question.points if correct == len(spots) else 0.0
    return _proportional(question.points, correct, wrong, len(spots))


def _matches(text: str, accepted: list[str], case_sensitive: bool) -> bool:
    if case_sensitive:
        return any(text == solution.strip() for solution in accepted)
    folded = text.casefold()
    return any(folded == solution.strip().casefold() for solution in accepted)


def _proportional(points: float, correct: int, wrong: int, total: int) -> float:
    return max(0.0, points * (correct - wrong) / total)
