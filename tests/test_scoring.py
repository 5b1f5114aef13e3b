"""
Unit tests for score aggregation.
"""
import pytest

from crisp.core.errors import IncompleteSessionError
from crisp.core.interview_rules import difficulty_for, time_limit_for
from crisp.interview.records import Grade, QuestionPrompt, ResponseRecord
from crisp.interview.scoring import aggregate_scores, round_half_up


def make_response(question_number, score, time_taken=10):
    difficulty = difficulty_for(question_number)
    return ResponseRecord(
        id=question_number,
        session_id="s1",
        question_number=question_number,
        difficulty=difficulty,
        time_limit_seconds=time_limit_for(difficulty),
        question_ref=str(question_number),
        prompt=QuestionPrompt(text="q", options={"A": "a", "B": "b", "C": "c", "D": "d"}),
        selected_answer="B" if score else "A",
        time_taken_seconds=time_taken,
        grade=Grade(is_correct=score == 10, score=score),
    )


def test_mixed_scores():
    """[10,10,0,10,0,10] -> 40/60, 67%, easy 2/20, medium 1/10, hard 1/10."""
    responses = [make_response(n, s) for n, s in enumerate([10, 10, 0, 10, 0, 10], start=1)]

    summary = aggregate_scores(responses)

    assert summary.total_score == 40
    assert summary.max_score == 60
    assert summary.percentage == 67
    assert summary.breakdown["easy"].correct == 2
    assert summary.breakdown["easy"].score == 20
    assert summary.breakdown["medium"].correct == 1
    assert summary.breakdown["medium"].score == 10
    assert summary.breakdown["hard"].correct == 1
    assert summary.breakdown["hard"].score == 10
    assert all(bucket.total == 20 for bucket in summary.breakdown.values())
    assert summary.answered_count == 6
    assert summary.recommendation == "Recommended with Reservations"


def test_average_time_rounds_half_up():
    times = [20, 20, 60, 60, 120, 121]
    responses = [make_response(n, 10, t) for n, t in enumerate(times, start=1)]
    # mean = 66.8333 -> 67
    assert aggregate_scores(responses).average_time_taken == 67


def test_perfect_score_is_highly_recommended():
    responses = [make_response(n, 10) for n in range(1, 7)]
    summary = aggregate_scores(responses)
    assert summary.percentage == 100
    assert summary.recommendation == "Highly Recommended"


def test_zero_score():
    responses = [make_response(n, 0) for n in range(1, 7)]
    summary = aggregate_scores(responses)
    assert summary.total_score == 0
    assert summary.percentage == 0
    assert summary.recommendation == "Not Recommended"


def test_incomplete_session_raises():
    responses = [make_response(n, 10) for n in range(1, 6)]
    with pytest.raises(IncompleteSessionError):
        aggregate_scores(responses)


def test_ungraded_responses_do_not_count():
    responses = [make_response(n, 10) for n in range(1, 6)]
    responses.append(ResponseRecord(
        id=6, session_id="s1", question_number=6, difficulty="hard", time_limit_seconds=120,
        question_ref="6", prompt=QuestionPrompt(text="q", options={}),
    ))
    with pytest.raises(IncompleteSessionError):
        aggregate_scores(responses)


def test_to_dict_is_json_shaped():
    responses = [make_response(n, s) for n, s in enumerate([10, 10, 0, 10, 0, 10], start=1)]
    data = aggregate_scores(responses).to_dict()
    assert data["breakdown"]["medium"] == {"correct": 1, "score": 10, "total": 20}
    assert data["percentage"] == 67


@pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (66.666, 67), (66.4, 66)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
