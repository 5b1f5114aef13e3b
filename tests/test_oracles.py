"""
Tests for question oracles: payload validation, the offline question bank
and the LLM-backed oracle with a fake provider.
"""
import json
import logging

import pytest
from openai import OpenAIError

from crisp.core.errors import MalformedOracleResponse, OracleUnavailable
from crisp.llm.openai_provider import OpenAIProvider
from crisp.llm.provider import LLMProvider, LLMProviderError, LLMResponse
from crisp.oracle.base import validate_question_payload
from crisp.oracle.llm_oracle import LLMQuestionOracle, parse_json_payload
from crisp.oracle.question_bank import QuestionBankOracle


GENERATED = {
    "question": "What does the virtual DOM let React avoid?",
    "option_a": "Writing JSX",
    "option_b": "Unnecessary direct DOM updates",
    "option_c": "Using state",
    "option_d": "Bundling",
    "correct_answer": "b",
    "explanation": "React diffs a virtual tree and patches only what changed.",
}


class FakeProvider(LLMProvider):
    """Returns queued replies; an exception in the queue is raised instead."""

    def __init__(self, replies, cost=0.0):
        self.replies = list(replies)
        self.cost = cost
        self.calls = []

    def chat(self, messages, model, temperature=0.7, max_tokens=None, **kwargs):
        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model=model, tokens_in=120, tokens_out=80, cost_estimate=self.cost)


# ============================================
# Payload validation
# ============================================

def test_validate_flat_options():
    payload = validate_question_payload(GENERATED)
    assert payload["options"]["B"] == "Unnecessary direct DOM updates"
    assert payload["correct_answer"] == "B"
    assert list(payload["options"]) == ["A", "B", "C", "D"]


def test_validate_nested_options():
    payload = validate_question_payload({
        "question": "  Pick one  ",
        "options": {"a": "1", "b": "2", "c": "3", "d": "4"},
        "correct_answer": "D",
    })
    assert payload["question"] == "Pick one"
    assert payload["options"] == {"A": "1", "B": "2", "C": "3", "D": "4"}
    assert payload["explanation"] is None


@pytest.mark.parametrize("broken", [
    {**GENERATED, "question": ""},
    {**GENERATED, "option_c": "   "},
    {**GENERATED, "correct_answer": "E"},
    {**GENERATED, "correct_answer": None},
    ["not", "an", "object"],
])
def test_validate_rejects_incomplete_payloads(broken):
    with pytest.raises(MalformedOracleResponse):
        validate_question_payload(broken)


def test_parse_json_payload_strips_fences():
    text = "Here you go:\n```json\n" + json.dumps(GENERATED) + "\n```"
    assert parse_json_payload(text)["correct_answer"] == "b"


def test_parse_json_payload_rejects_garbage():
    with pytest.raises(MalformedOracleResponse):
        parse_json_payload("I cannot help with that.")
    with pytest.raises(MalformedOracleResponse):
        parse_json_payload("{not json}")


# ============================================
# Question bank
# ============================================

def test_question_bank_is_idempotent_per_slot(session_factory):
    oracle = QuestionBankOracle(session_factory)

    first = oracle.get_question("s1", 1, "easy")
    again = oracle.get_question("s1", 1, "easy")

    assert first == again
    assert first.time_limit_seconds == 20
    assert set(first.prompt.options) == {"A", "B", "C", "D"}


def test_question_bank_does_not_repeat_within_difficulty(session_factory):
    oracle = QuestionBankOracle(session_factory)

    first = oracle.get_question("s1", 1, "easy")
    second = oracle.get_question("s1", 2, "easy")

    assert first.prompt.text != second.prompt.text


def test_question_bank_grades_against_stored_key(session_factory):
    bank = {
        "easy": [{"question": "2+2?", "options": {"A": "3", "B": "4", "C": "5", "D": "22"}, "correct_answer": "B"}],
        "medium": [{"question": "m?", "options": {"A": "1", "B": "2", "C": "3", "D": "4"}, "correct_answer": "A"}],
        "hard": [{"question": "h?", "options": {"A": "1", "B": "2", "C": "3", "D": "4"}, "correct_answer": "C"}],
    }
    oracle = QuestionBankOracle(session_factory, bank=bank)
    question = oracle.get_question("s1", 1, "easy")

    right = oracle.grade_answer(question.question_id, "b")
    wrong = oracle.grade_answer(question.question_id, "D")

    assert right.is_correct and right.score == 10
    assert right.feedback.startswith("Correct.")
    assert not wrong.is_correct and wrong.score == 0
    assert wrong.correct_answer == "B"
    assert "You chose D" in wrong.feedback


def test_question_bank_requires_every_difficulty(session_factory):
    with pytest.raises(ValueError):
        QuestionBankOracle(session_factory, bank={"easy": [GENERATED], "medium": [], "hard": [GENERATED]})


def test_grading_unknown_question_is_unavailable(session_factory):
    oracle = QuestionBankOracle(session_factory)
    with pytest.raises(OracleUnavailable):
        oracle.grade_answer("999", "A")


def test_question_bank_narrative(session_factory):
    oracle = QuestionBankOracle(session_factory)
    metrics = {
        "total_score": 40, "max_score": 60, "percentage": 67, "average_time_taken": 30,
        "recommendation": "Recommended with Reservations",
        "breakdown": {"easy": {"correct": 2, "score": 20, "total": 20}},
    }
    text = oracle.narrate_summary(metrics, "Ada", "Backend Engineer")
    assert "Ada scored 40/60 (67%)" in text
    assert text.endswith("Recommended with Reservations")


def test_roles_come_from_the_interview(session_factory, session_record):
    oracle = QuestionBankOracle(session_factory)
    assert oracle.roles_for_session(session_record.id) == "Full Stack Developer (React/Node.js)"


# ============================================
# LLM oracle
# ============================================

def test_llm_oracle_generates_and_caches(session_factory):
    provider = FakeProvider([json.dumps(GENERATED), "Good call on the diffing."])
    oracle = LLMQuestionOracle(session_factory, provider)

    question = oracle.get_question("s1", 3, "medium")
    assert oracle.get_question("s1", 3, "medium") == question
    assert len(provider.calls) == 1
    assert question.time_limit_seconds == 60
    assert "medium" in provider.calls[0]["messages"][1]["content"]

    grade = oracle.grade_answer(question.question_id, "B")
    assert grade.is_correct
    assert grade.feedback == "Good call on the diffing."


def test_llm_oracle_provider_error_is_unavailable(session_factory):
    oracle = LLMQuestionOracle(session_factory, FakeProvider([LLMProviderError("timeout")]))
    with pytest.raises(OracleUnavailable):
        oracle.get_question("s1", 1, "easy")


def test_llm_oracle_bad_json_is_malformed(session_factory):
    oracle = LLMQuestionOracle(session_factory, FakeProvider(["Sure! Here's a question about React."]))
    with pytest.raises(MalformedOracleResponse) as excinfo:
        oracle.get_question("s1", 1, "easy")
    assert excinfo.value.question_number == 1


def test_llm_oracle_feedback_falls_back_to_explanation(session_factory):
    provider = FakeProvider([json.dumps(GENERATED), LLMProviderError("rate limited")])
    oracle = LLMQuestionOracle(session_factory, provider)
    question = oracle.get_question("s1", 1, "easy")

    grade = oracle.grade_answer(question.question_id, "A")

    assert not grade.is_correct
    assert grade.feedback == GENERATED["explanation"]


def test_llm_oracle_summary_failure_is_unavailable(session_factory):
    oracle = LLMQuestionOracle(session_factory, FakeProvider([LLMProviderError("down")]))
    with pytest.raises(OracleUnavailable):
        oracle.narrate_summary({"breakdown": {}}, None, "Backend Engineer")


def test_llm_oracle_logs_completion_cost(session_factory, caplog):
    provider = FakeProvider([json.dumps(GENERATED)], cost=0.0123)
    oracle = LLMQuestionOracle(session_factory, provider)

    with caplog.at_level(logging.INFO, logger="crisp.oracle.llm_oracle"):
        oracle.get_question("s1", 1, "easy")

    assert "tokens_in=120" in caplog.text
    assert "cost=$0.0123" in caplog.text


# ============================================
# OpenAI provider
# ============================================

class _FailingCompletions:
    def create(self, **kwargs):
        raise OpenAIError("quota exceeded")


class _FailingClient:
    class chat:
        completions = _FailingCompletions()


def test_openai_provider_wraps_sdk_errors():
    provider = OpenAIProvider(api_key="sk-test")
    provider.client = _FailingClient()

    with pytest.raises(LLMProviderError):
        provider.chat([{"role": "user", "content": "hi"}], model="gpt-4o-mini")


def test_openai_provider_requires_key(monkeypatch):
    monkeypatch.setattr("crisp.llm.openai_provider.OPENAI_API_KEY", None)
    with pytest.raises(ValueError):
        OpenAIProvider()


def test_openai_cost_estimate():
    provider = OpenAIProvider(api_key="sk-test")
    assert provider.estimate_cost(1_000_000, 1_000_000, "gpt-4o-mini") == pytest.approx(0.75)
