"""
LLM-backed question oracle.

Generates multiple-choice questions, per-answer feedback and the final
assessment narrative through an LLMProvider (OpenAI by default).
"""
import json
import logging
import re
from typing import Any, Dict, Optional

from crisp.core.errors import MalformedOracleResponse, OracleUnavailable
from crisp.core.interview_rules import MAX_SCORE, TOTAL_QUESTIONS, bucket_max_score
from crisp.core.logging_config import session_context
from crisp.db.models.generated_question import GeneratedQuestion
from crisp.llm.provider import LLMProvider, LLMProviderError
from crisp.llm.router import get_model_for_feature, get_temperature_for_feature
from crisp.oracle.base import StoredQuestionOracle, option_lines

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert technical interviewer."

QUESTION_PROMPT = """Generate a {difficulty} level multiple-choice question for a {roles} position.

Guidelines:
- For EASY: Basic concepts, syntax, definitions (fundamental knowledge)
- For MEDIUM: Problem-solving, best practices, intermediate concepts (practical application)
- For HARD: Advanced topics, edge cases, performance, architecture (expert-level thinking)

Return ONLY valid JSON in this exact format (no markdown, no code blocks, no extra text):
{{
  "question": "Clear, concise question text",
  "option_a": "First option",
  "option_b": "Second option",
  "option_c": "Third option",
  "option_d": "Fourth option",
  "correct_answer": "A",
  "explanation": "Brief explanation of why the answer is correct"
}}

Make it practical and relevant to real-world {roles} development."""

FEEDBACK_PROMPT = """You are providing constructive feedback on a multiple-choice answer.

Question: {question}
Difficulty: {difficulty}

Options:
{options}

Correct Answer: {correct}
Candidate's Answer: {selected}

The candidate's answer is {verdict}.

Provide brief, constructive feedback (2-3 sentences). {guidance}
Keep the tone professional, educational, and encouraging."""

SUMMARY_PROMPT = """Provide a comprehensive assessment summary.

Candidate: {candidate}
Position: {roles}
Total Score: {total_score}/{max_score} ({percentage}%)

Performance Breakdown:
- Easy Questions: {easy_correct} correct, {easy_score}/{bucket_max} points
- Medium Questions: {medium_correct} correct, {medium_score}/{bucket_max} points
- Hard Questions: {hard_correct} correct, {hard_score}/{bucket_max} points

Average Time Per Question: {avg_time} seconds
Recommendation tier: {recommendation}

Write markdown sections: Overall Assessment (3-4 sentences), Key Strengths (2-3 bullets),
Areas for Improvement (2-3 bullets), Final Recommendation (use the tier above with a
one-sentence justification). Keep the tone professional, balanced, and constructive."""


def parse_json_payload(text: str) -> Dict[str, Any]:
    """
    Extract a JSON object from model output, tolerating markdown fences.

    Raises:
        MalformedOracleResponse: No JSON object could be parsed
    """
    cleaned = re.sub(r"```(?:json)?", "", text or "").strip()
    match = re.search(r"\{.*\}", cleaned, re.DOTALL)
    if not match:
        raise MalformedOracleResponse(f"No JSON object in model output: {cleaned[:100]}")
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as e:
        raise MalformedOracleResponse(f"Invalid JSON from model: {e}")
    if not isinstance(data, dict):
        raise MalformedOracleResponse("Model output is not a JSON object")
    return data


class LLMQuestionOracle(StoredQuestionOracle):
    """Question oracle that asks an LLM for questions and feedback."""

    def __init__(self, session_factory, provider: LLMProvider):
        super().__init__(session_factory)
        self.provider = provider
        self.source = f"openai:{get_model_for_feature('question_generation')}"

    def _complete(self, feature: str, prompt: str, max_tokens: int) -> str:
        response = self.provider.chat(
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            model=get_model_for_feature(feature),
            temperature=get_temperature_for_feature(feature),
            max_tokens=max_tokens,
        )
        logger.info(
            f"LLM {feature} ({response.model}): tokens_in={response.tokens_in}, "
            f"tokens_out={response.tokens_out}, cost=${response.cost_estimate:.4f}"
        )
        if response.truncated:
            logger.warning(f"LLM {feature} output hit max_tokens={max_tokens}")
        return response.content

    def _compose_question(self, session_id: str, question_number: int, difficulty: str, roles: str) -> Dict[str, Any]:
        context = session_context(session_id, question_number)
        prompt = QUESTION_PROMPT.format(difficulty=difficulty, roles=roles)
        try:
            text = self._complete("question_generation", prompt, max_tokens=600)
        except LLMProviderError as e:
            logger.error(f"Question generation failed: {e} ({context})")
            raise OracleUnavailable("Failed to generate question. Please try again.", session_id, question_number)
        try:
            return parse_json_payload(text)
        except MalformedOracleResponse as e:
            logger.error(f"Unparseable question from model: {e.message} ({context})")
            raise MalformedOracleResponse(e.message, session_id, question_number)

    def _compose_feedback(self, question: GeneratedQuestion, selected: str, is_correct: bool) -> Optional[str]:
        if is_correct:
            guidance = "Confirm why the answer is correct and mention one key insight or best practice."
        else:
            guidance = "Explain why the answer is incorrect and what the correct concept is, without being discouraging."
        prompt = FEEDBACK_PROMPT.format(
            question=question.question_text,
            difficulty=question.difficulty,
            options="\n".join(option_lines(question.options)),
            correct=question.correct_answer,
            selected=selected,
            verdict="CORRECT" if is_correct else "INCORRECT",
            guidance=guidance,
        )
        try:
            return self._complete("answer_feedback", prompt, max_tokens=250).strip() or None
        except LLMProviderError as e:
            # The grade itself is deterministic; feedback text is optional
            logger.warning(
                f"Feedback generation failed, using explanation: {e} "
                f"({session_context(question.session_id, question.question_number)})"
            )
            return None

    def narrate_summary(self, metrics: Dict[str, Any], candidate_name: Optional[str], roles: str) -> Optional[str]:
        breakdown = metrics.get("breakdown", {})
        prompt = SUMMARY_PROMPT.format(
            candidate=candidate_name or "Candidate",
            roles=roles,
            total_score=metrics.get("total_score", 0),
            max_score=metrics.get("max_score", MAX_SCORE),
            percentage=metrics.get("percentage", 0),
            bucket_max=bucket_max_score(),
            easy_correct=breakdown.get("easy", {}).get("correct", 0),
            easy_score=breakdown.get("easy", {}).get("score", 0),
            medium_correct=breakdown.get("medium", {}).get("correct", 0),
            medium_score=breakdown.get("medium", {}).get("score", 0),
            hard_correct=breakdown.get("hard", {}).get("correct", 0),
            hard_score=breakdown.get("hard", {}).get("score", 0),
            avg_time=metrics.get("average_time_taken", 0),
            recommendation=metrics.get("recommendation", ""),
        )
        try:
            return self._complete("session_summary", prompt, max_tokens=900).strip() or None
        except LLMProviderError as e:
            logger.warning(f"Summary generation failed after {TOTAL_QUESTIONS} questions: {e}")
            raise OracleUnavailable("Failed to generate summary")
