"""
Interview rules configuration.

Single source of truth for question count, difficulty schedule, time budgets
and scoring scale. These are fixed per interview definition and are not
environment-tunable.
"""
from typing import Dict, List

# Question schedule
TOTAL_QUESTIONS: int = 6
QUESTIONS_PER_DIFFICULTY: int = 2

DIFFICULTIES: List[str] = ["easy", "medium", "hard"]

# Seconds per question, fixed at question creation
TIME_LIMITS: Dict[str, int] = {
    "easy": 20,
    "medium": 60,
    "hard": 120,
}

# Scoring
PER_QUESTION_MAX: int = 10
MAX_SCORE: int = TOTAL_QUESTIONS * PER_QUESTION_MAX

# Multiple-choice options
ANSWER_OPTIONS: List[str] = ["A", "B", "C", "D"]

# Answer recorded when the timer runs out with nothing selected
DEFAULT_TIMEOUT_ANSWER: str = "A"

# Recommendation tiers, checked top to bottom (minimum percentage, label)
RECOMMENDATION_TIERS = [
    (85, "Highly Recommended"),
    (70, "Recommended"),
    (55, "Recommended with Reservations"),
    (0, "Not Recommended"),
]


def difficulty_for(question_number: int) -> str:
    """
    Get the difficulty bucket for a 1-based question number.

    Questions 1-2 are easy, 3-4 medium, 5-6 hard.

    Raises:
        ValueError: If question_number is outside 1..TOTAL_QUESTIONS
    """
    if question_number < 1 or question_number > TOTAL_QUESTIONS:
        raise ValueError(f"Question number out of range: {question_number}")
    return DIFFICULTIES[(question_number - 1) // QUESTIONS_PER_DIFFICULTY]


def time_limit_for(difficulty: str) -> int:
    """Get the time budget in seconds for a difficulty."""
    if difficulty not in TIME_LIMITS:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    return TIME_LIMITS[difficulty]


def bucket_max_score() -> int:
    """Maximum points available in one difficulty bucket."""
    return QUESTIONS_PER_DIFFICULTY * PER_QUESTION_MAX


def recommendation_for(percentage: int) -> str:
    """Map a final percentage to a hiring recommendation tier."""
    for threshold, label in RECOMMENDATION_TIERS:
        if percentage >= threshold:
            return label
    return RECOMMENDATION_TIERS[-1][1]


def normalize_option(value: str) -> str:
    """Upper-case and strip an option letter. Returns empty string for None."""
    return (value or "").strip().upper()


def is_valid_option(value: str) -> bool:
    return normalize_option(value) in ANSWER_OPTIONS
