from __future__ import annotations

from compass_core.validators import (
    ALL_SAME_ANSWER,
    EXCESSIVE_SAME_ANSWER,
    GENUINE_RESPONSES,
    INSUFFICIENT_DATA,
    REPEATING_PATTERN,
    flatten_answers,
    validate_answer_patterns,
)

VARIED_20 = [1, 2, 3, 4, 5, 3, 2, 4, 1, 5, 2, 3, 5, 1, 4, 4, 2, 1, 3, 5]


def test_flatten_skips_unanswered_in_category_order():
    assert flatten_answers({"a": [1, None, 3], "b": [None], "c": [5]}) == [1, 3, 5]
    assert flatten_answers({}) == []


def test_fewer_than_ten_answers_is_valid():
    verdict = validate_answer_patterns({"a": [3] * 9 + [None] * 5})
    assert verdict.valid
    assert verdict.reason == INSUFFICIENT_DATA
    assert verdict.details == {"total": 9}


def test_all_same_answer():
    verdict = validate_answer_patterns({"a": [4] * 6, "b": [4] * 6})
    assert not verdict.valid
    assert verdict.reason == ALL_SAME_ANSWER
    assert verdict.details == {"value": 4, "count": 12}


def test_dominant_value_above_threshold():
    verdict = validate_answer_patterns({"a": [5] * 20 + [1]})
    assert not verdict.valid
    assert verdict.reason == EXCESSIVE_SAME_ANSWER
    assert verdict.details == {"value": 5, "count": 20, "total": 21, "percentage": 95}


def test_exactly_ninety_five_percent_is_not_excessive():
    verdict = validate_answer_patterns({"a": [5] * 19 + [1]})
    assert verdict.reason != EXCESSIVE_SAME_ANSWER


def test_repeating_pattern_detected():
    verdict = validate_answer_patterns({"a": [1, 2] * 10})
    assert not verdict.valid
    assert verdict.reason == REPEATING_PATTERN
    assert verdict.details == {"pattern": [1, 2], "repetitions": 10, "consistency": 100}


def test_partial_pattern_above_consistency_threshold():
    verdict = validate_answer_patterns({"a": [1, 2] * 9 + [3, 4, 5, 3, 4, 5]})
    assert verdict.reason == REPEATING_PATTERN
    assert verdict.details["repetitions"] == 9
    assert verdict.details["consistency"] == 75


def test_pattern_check_needs_twenty_answers():
    verdict = validate_answer_patterns({"a": [1, 2] * 9})
    assert verdict.valid
    assert verdict.reason == GENUINE_RESPONSES


def test_genuine_responses_details():
    verdict = validate_answer_patterns({"a": VARIED_20[:10], "b": VARIED_20[10:]})
    assert verdict.valid
    assert verdict.reason == GENUINE_RESPONSES
    assert verdict.details == {
        "total": 20,
        "unique_values": 5,
        "distribution": {1: 4, 2: 4, 3: 4, 4: 4, 5: 4},
    }


def test_all_same_takes_precedence_over_other_checks():
    verdict = validate_answer_patterns({"a": [3] * 40})
    assert verdict.reason == ALL_SAME_ANSWER


def test_verdict_to_dict():
    out = validate_answer_patterns({"a": [2] * 10}).to_dict()
    assert out == {"valid": False, "reason": ALL_SAME_ANSWER, "details": {"value": 2, "count": 10}}


def test_twenty_identical_answers():
    assert validate_answer_patterns({"a": [2] * 20}).reason == ALL_SAME_ANSWER


def test_three_step_pattern_repeated_seven_times():
    verdict = validate_answer_patterns({"a": [1, 2, 3] * 7})
    assert verdict.reason == REPEATING_PATTERN
    assert verdict.details["pattern"] == [1, 2, 3]
    assert verdict.details["repetitions"] == 7


def test_nine_answers_are_never_flagged():
    verdict = validate_answer_patterns({"a": [1, 2, 1, 2, 1, 2, 1, 2, 1]})
    assert verdict.valid
    assert verdict.reason == INSUFFICIENT_DATA


def test_dominant_percentage_rounds_half_up():
    verdict = validate_answer_patterns({"a": [4] * 193 + [1, 2, 3, 5, 1, 2, 3]})
    assert verdict.reason == EXCESSIVE_SAME_ANSWER
    assert verdict.details == {"value": 4, "count": 193, "total": 200, "percentage": 97}
