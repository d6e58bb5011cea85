"""
Unit tests for exam scoring.
"""
import pytest

from app.services.scoring_service import ScoringService


@pytest.fixture
def scorer():
    return ScoringService(pass_threshold=70.0)


class TestGrade:
    def test_all_correct_passes(self, scorer):
        key = {1: {10}, 2: {20}}
        score, passed, correct = scorer.grade(key, {1: 10, 2: 20})
        assert (score, passed, correct) == (100.0, True, 2)

    def test_half_correct_fails(self, scorer):
        key = {1: {10}, 2: {20}}
        score, passed, correct = scorer.grade(key, {1: 10, 2: 21})
        assert (score, passed, correct) == (50.0, False, 1)

    def test_unanswered_counts_as_wrong(self, scorer):
        key = {1: {10}, 2: {20}, 3: {30}}
        score, passed, _ = scorer.grade(key, {1: 10, 2: None})
        assert score == 33.3
        assert passed is False

    def test_score_rounded_to_one_decimal(self, scorer):
        key = {q: {q * 10} for q in range(1, 4)}
        score, _, _ = scorer.grade(key, {1: 10, 2: 20})
        assert score == 66.7

    def test_threshold_is_inclusive(self, scorer):
        key = {q: {q * 10} for q in range(1, 11)}
        answers = {q: q * 10 for q in range(1, 8)}
        score, passed, correct = scorer.grade(key, answers)
        assert correct == 7
        assert score == 70.0
        assert passed is True

    def test_just_below_threshold_fails(self, scorer):
        key = {q: {q * 10} for q in range(1, 31)}
        answers = {q: q * 10 for q in range(1, 21)}
        score, passed, _ = scorer.grade(key, answers)
        assert score == 66.7
        assert passed is False

    def test_empty_exam_scores_zero(self, scorer):
        score, passed, correct = scorer.grade({}, {})
        assert (score, passed, correct) == (0.0, False, 0)

    def test_any_of_several_correct_choices_counts(self, scorer):
        key = {1: {10, 11}, 2: {20}}
        score, _, correct = scorer.grade(key, {1: 11, 2: 20})
        assert correct == 2
        assert score == 100.0

    def test_question_without_correct_choice_never_counts(self, scorer):
        score, _, correct = scorer.grade({1: set(), 2: {20}}, {1: 10, 2: 20})
        assert correct == 1
        assert score == 50.0

    def test_answers_outside_key_are_ignored(self, scorer):
        score, _, correct = scorer.grade({1: {10}}, {1: 10, 99: 990})
        assert correct == 1
        assert score == 100.0

    @pytest.mark.parametrize("total,correct,expected", [
        (3, 1, 33.3),
        (6, 5, 83.3),
        (7, 3, 42.9),
        (9, 9, 100.0),
    ])
    def test_score_formula(self, scorer, total, correct, expected):
        key = {q: {q} for q in range(total)}
        answers = {q: q for q in range(correct)}
        score, passed, _ = scorer.grade(key, answers)
        assert score == expected
        assert passed is (expected >= 70.0)


def test_custom_threshold():
    scorer = ScoringService(pass_threshold=50.0)
    assert scorer.is_passing(50.0) is True
    assert scorer.is_passing(49.9) is False
