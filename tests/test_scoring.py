from __future__ import annotations

import pytest

from conftest import correct_submission, make_quiz, partial_submission
from quiz_live.core.models import (
    AnswerOption,
    MultipleChoiceQuestion,
    MultipleChoiceSubmittedAnswer,
    QuizSubmission,
    Result,
    ScoringType,
    ShortAnswerQuestion,
    ShortAnswerSubmittedAnswer,
)
from quiz_live.core.scoring import calculate_and_update_scores, is_answer_correct, score_for_answer


def _multiple_choice(scoring_type=ScoringType.ALL_OR_NOTHING):
    return MultipleChoiceQuestion(
        id=1,
        title="Primes",
        text="Which numbers are prime?",
        answer_options=[
            AnswerOption(id=1, text="2", is_correct=True),
            AnswerOption(id=2, text="3", is_correct=True),
            AnswerOption(id=3, text="4"),
            AnswerOption(id=4, text="6"),
        ],
        points=2.0,
        scoring_type=scoring_type,
    )


def _short_answer(scoring_type=ScoringType.ALL_OR_NOTHING, case_sensitive=False):
    return ShortAnswerQuestion(
        id=2,
        title="Rivers",
        text="[1] flows through Paris and [2] through London.",
        solutions={1: ["Seine"], 2: ["Thames", "River Thames"]},
        points=2.0,
        case_sensitive=case_sensitive,
        scoring_type=scoring_type,
    )


@pytest.mark.parametrize(
    ("selected", "expected"),
    [({1, 2}, 2.0), ({1}, 0.0), ({1, 2, 3}, 0.0), (set(), 0.0)],
)
def test_all_or_nothing_multiple_choice(selected, expected):
    answer = MultipleChoiceSubmittedAnswer(question_id=1, selected_option_ids=selected)

    assert score_for_answer(_multiple_choice(), answer) == expected


@pytest.mark.parametrize(
    ("selected", "expected"),
    [({1, 2}, 2.0), ({1}, 1.0), ({1, 2, 3, 4}, 0.0), ({3, 4}, 0.0)],
)
def test_proportional_multiple_choice_never_goes_negative(selected, expected):
    question = _multiple_choice(ScoringType.PROPORTIONAL_WITH_PENALTY)
    answer = MultipleChoiceSubmittedAnswer(question_id=1, selected_option_ids=selected)

    assert score_for_answer(question, answer) == expected


def test_short_answer_ignores_case_and_accepts_alternatives():
    answer = ShortAnswerSubmittedAnswer(question_id=2, spot_texts={1: " seine ", 2: "river thames"})

    assert score_for_answer(_short_answer(), answer) == 2.0


def test_case_sensitive_short_answer():
    answer = ShortAnswerSubmittedAnswer(question_id=2, spot_texts={1: "seine", 2: "Thames"})

    assert score_for_answer(_short_answer(case_sensitive=True), answer) == 0.0


def test_proportional_short_answer_skips_blank_spots():
    question = _short_answer(ScoringType.PROPORTIONAL_WITH_PENALTY)
    answer = ShortAnswerSubmittedAnswer(question_id=2, spot_texts={1: "Seine", 2: "  "})

    assert score_for_answer(question, answer) == 1.0


def test_answer_of_the_wrong_kind_scores_zero():
    answer = ShortAnswerSubmittedAnswer(question_id=1, spot_texts={1: "2"})

    assert score_for_answer(_multiple_choice(), answer) == 0.0


def test_submission_total_and_result_percentage():
    quiz = make_quiz()
    submission = partial_submission()

    total = calculate_and_update_scores(submission, quiz)
    result = Result(submission=submission)
    result.evaluate_submission(quiz.max_score)

    assert total == 1.0
    assert [answer.score_in_points for answer in submission.submitted_answers] == [0.0, 1.0]
    assert result.score == pytest.approx(33.33)
    assert result.successful is False


def test_answers_to_unknown_questions_score_zero():
    submission = QuizSubmission(
        submitted_answers=[MultipleChoiceSubmittedAnswer(question_id=99, selected_option_ids={1})]
    )

    assert calculate_and_update_scores(submission, make_quiz()) == 0.0


def test_is_answer_correct_requires_full_points():
    quiz = make_quiz()
    submission = correct_submission()
    calculate_and_update_scores(submission, quiz)

    assert is_answer_correct(quiz.questions[0], submission.answer_for(1))
    assert not is_answer_correct(quiz.questions[0], None)


def test_evaluate_without_graded_submission_fails():
    with pytest.raises(ValueError):
        Result().evaluate_submission(3.0)
