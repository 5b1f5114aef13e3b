"""
Score aggregation over graded responses.

Pure functions. Only valid once every question has been answered; callers
guard against calling it earlier.
"""
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Sequence

from crisp.core.errors import IncompleteSessionError
from crisp.core.interview_rules import (
    DIFFICULTIES,
    PER_QUESTION_MAX,
    QUESTIONS_PER_DIFFICULTY,
    TOTAL_QUESTIONS,
    recommendation_for,
)
from crisp.interview.records import ResponseRecord


@dataclass(frozen=True)
class DifficultyBreakdown:
    correct: int
    score: int
    total: int


@dataclass(frozen=True)
class ScoreSummary:
    total_score: int
    max_score: int
    percentage: int
    breakdown: Dict[str, DifficultyBreakdown]
    average_time_taken: int
    answered_count: int
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (banker's rounding is not wanted here)."""
    return int(math.floor(value + 0.5))


def aggregate_scores(
    responses: Sequence[ResponseRecord],
    total_questions: int = TOTAL_QUESTIONS,
    per_question_max: int = PER_QUESTION_MAX,
) -> ScoreSummary:
    """
    Turn graded responses into total, percentage, per-difficulty and timing metrics.

    Raises:
        IncompleteSessionError: If fewer (or more) than total_questions are graded
    """
    graded: List[ResponseRecord] = [r for r in responses if r.is_answered and r.grade is not None]
    session_id = responses[0].session_id if responses else None
    if len(graded) != total_questions:
        raise IncompleteSessionError(
            f"Interview incomplete. {len(graded)}/{total_questions} questions answered.",
            session_id=session_id,
        )

    total_score = sum(r.grade.score for r in graded)
    max_score = total_questions * per_question_max
    bucket_total = QUESTIONS_PER_DIFFICULTY * per_question_max

    breakdown: Dict[str, DifficultyBreakdown] = {}
    for difficulty in DIFFICULTIES:
        bucket = [r for r in graded if r.difficulty == difficulty]
        breakdown[difficulty] = DifficultyBreakdown(
            correct=sum(1 for r in bucket if r.grade.score == per_question_max),
            score=sum(r.grade.score for r in bucket),
            total=bucket_total,
        )

    percentage = round_half_up(100 * total_score / max_score) if max_score else 0
    average_time = round_half_up(sum(r.time_taken_seconds or 0 for r in graded) / len(graded))

    return ScoreSummary(
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        breakdown=breakdown,
        average_time_taken=average_time,
        answered_count=len(graded),
        recommendation=recommendation_for(percentage),
    )
