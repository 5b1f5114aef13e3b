"""
Model router for the oracle's LLM calls.
"""
from crisp.core.config import OPENAI_API_KEY

DEFAULT_MODEL = "gpt-4o-mini"

# Oracle feature -> model
MODEL_ROUTING = {
    "question_generation": "gpt-4o-mini",
    "answer_feedback": "gpt-4o-mini",
    "session_summary": "gpt-4o-mini",
}

# Sampling temperature per feature (questions benefit from variety, feedback should be steady)
TEMPERATURES = {
    "question_generation": 0.8,
    "answer_feedback": 0.3,
    "session_summary": 0.4,
}


def get_model_for_feature(feature: str) -> str:
    """Model identifier for an oracle feature."""
    return MODEL_ROUTING.get(feature, DEFAULT_MODEL)


def get_temperature_for_feature(feature: str) -> float:
    return TEMPERATURES.get(feature, 0.7)


def is_llm_available() -> bool:
    """True when an OpenAI key is configured."""
    return bool(OPENAI_API_KEY)
