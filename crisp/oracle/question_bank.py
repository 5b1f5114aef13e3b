"""
Offline question oracle backed by a built-in question bank.

Used when no LLM key is configured. Selection is deterministic per
(session_id, question_number) so a reloaded session sees the same question
even before the generated_questions row is written.
"""
import logging
import random
from typing import Any, Dict, List, Optional

from crisp.core.interview_rules import DIFFICULTIES
from crisp.db.models.generated_question import GeneratedQuestion
from crisp.oracle.base import StoredQuestionOracle

logger = logging.getLogger(__name__)


QUESTION_BANK: Dict[str, List[Dict[str, Any]]] = {
    "easy": [
        {
            "question": "Which React hook is used to hold local component state?",
            "options": {"A": "useState", "B": "useEffect", "C": "useMemo", "D": "useRef"},
            "correct_answer": "A",
            "explanation": "useState returns a state value and a setter that triggers a re-render.",
        },
        {
            "question": "Which HTTP method is conventionally used to create a new resource?",
            "options": {"A": "GET", "B": "POST", "C": "DELETE", "D": "HEAD"},
            "correct_answer": "B",
            "explanation": "POST submits a new entity to the collection resource.",
        },
        {
            "question": "What does `npm install --save-dev` do?",
            "options": {
                "A": "Installs a package globally",
                "B": "Removes a package from dependencies",
                "C": "Adds the package to devDependencies",
                "D": "Upgrades npm itself",
            },
            "correct_answer": "C",
            "explanation": "--save-dev records the package under devDependencies in package.json.",
        },
        {
            "question": "Which JavaScript keyword declares a block-scoped variable that cannot be reassigned?",
            "options": {"A": "var", "B": "let", "C": "static", "D": "const"},
            "correct_answer": "D",
            "explanation": "const is block-scoped and prevents reassignment of the binding.",
        },
        {
            "question": "In Express, which object is used to send a response to the client?",
            "options": {"A": "req", "B": "res", "C": "next", "D": "app"},
            "correct_answer": "B",
            "explanation": "The res object exposes send, json and status helpers.",
        },
    ],
    "medium": [
        {
            "question": "When does a useEffect with an empty dependency array run?",
            "options": {
                "A": "On every render",
                "B": "Only after the first render (and cleanup on unmount)",
                "C": "Never",
                "D": "Only when props change",
            },
            "correct_answer": "B",
            "explanation": "An empty array means no dependencies can change, so the effect runs once after mount.",
        },
        {
            "question": "What is the main purpose of a database index?",
            "options": {
                "A": "Enforce foreign keys",
                "B": "Compress table data",
                "C": "Speed up lookups on the indexed columns",
                "D": "Encrypt sensitive columns",
            },
            "correct_answer": "C",
            "explanation": "Indexes trade write cost and storage for faster reads on the indexed columns.",
        },
        {
            "question": "Which Node.js pattern avoids blocking the event loop during CPU-heavy work?",
            "options": {
                "A": "Wrapping the work in a Promise",
                "B": "Using setTimeout with 0 ms",
                "C": "Calling process.nextTick",
                "D": "Offloading the work to worker threads",
            },
            "correct_answer": "D",
            "explanation": "A Promise still runs on the main thread; worker threads run the computation in parallel.",
        },
        {
            "question": "What does a 409 Conflict status code usually indicate?",
            "options": {
                "A": "The request conflicts with the current state of the resource",
                "B": "The client is not authenticated",
                "C": "The server timed out",
                "D": "The resource was permanently moved",
            },
            "correct_answer": "A",
            "explanation": "409 signals that the request cannot be applied to the resource in its current state.",
        },
        {
            "question": "Why should list items in React have stable keys?",
            "options": {
                "A": "Keys are required for styling",
                "B": "Keys let React match items between renders",
                "C": "Keys make the list sortable",
                "D": "Keys enable server-side rendering",
            },
            "correct_answer": "B",
            "explanation": "Stable keys let reconciliation reuse the right DOM nodes and component state.",
        },
    ],
    "hard": [
        {
            "question": "Two requests read a counter, increment it and write it back. Which approach prevents lost updates?",
            "options": {
                "A": "Caching the counter in memory",
                "B": "Retrying the read",
                "C": "An atomic conditional update or row lock",
                "D": "Increasing the connection pool size",
            },
            "correct_answer": "C",
            "explanation": "Read-modify-write races need atomicity, e.g. UPDATE ... SET n = n + 1 or SELECT ... FOR UPDATE.",
        },
        {
            "question": "Which technique best reduces the initial bundle size of a large React SPA?",
            "options": {
                "A": "Inlining all CSS",
                "B": "Route-based code splitting with dynamic import()",
                "C": "Using class components",
                "D": "Disabling minification",
            },
            "correct_answer": "B",
            "explanation": "Dynamic imports defer loading of route chunks until they are needed.",
        },
        {
            "question": "A Node.js service's memory grows steadily under load. What is the most likely cause to check first?",
            "options": {
                "A": "Event listeners or caches that are never released",
                "B": "Too many CPU cores",
                "C": "Using async/await",
                "D": "HTTP keep-alive",
            },
            "correct_answer": "A",
            "explanation": "Unbounded caches and leaked listeners keep objects reachable and defeat garbage collection.",
        },
        {
            "question": "What property does an idempotent API endpoint guarantee?",
            "options": {
                "A": "It always returns 200",
                "B": "It never touches the database",
                "C": "It is faster than non-idempotent endpoints",
                "D": "Repeating the same request has the same effect as sending it once",
            },
            "correct_answer": "D",
            "explanation": "Idempotency makes retries safe because duplicates do not change the outcome.",
        },
        {
            "question": "In a JWT-based auth flow, how is a compromised token best mitigated?",
            "options": {
                "A": "Make tokens never expire",
                "B": "Short-lived access tokens with refresh rotation and revocation",
                "C": "Store tokens in the URL",
                "D": "Sign tokens with a shorter secret",
            },
            "correct_answer": "B",
            "explanation": "Short lifetimes bound the damage window and rotation allows revocation.",
        },
    ],
}


class QuestionBankOracle(StoredQuestionOracle):
    """Deterministic, offline oracle. Never unavailable for lack of a network."""

    source = "question_bank"

    def __init__(self, session_factory, bank: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__(session_factory)
        self.bank = bank or QUESTION_BANK
        for difficulty in DIFFICULTIES:
            if not self.bank.get(difficulty):
                raise ValueError(f"Question bank has no '{difficulty}' questions")

    def _compose_question(self, session_id: str, question_number: int, difficulty: str, roles: str) -> Dict[str, Any]:
        pool = self.bank[difficulty]
        rng = random.Random(f"{session_id}:{difficulty}")
        # Both questions of a difficulty come from one shuffle so they never repeat
        order = list(range(len(pool)))
        rng.shuffle(order)
        position = (question_number - 1) % len(order)
        return dict(pool[order[position]])

    def _compose_feedback(self, question: GeneratedQuestion, selected: str, is_correct: bool) -> Optional[str]:
        if is_correct:
            return f"Correct. {question.explanation or ''}".strip()
        return (
            f"Not quite. You chose {selected}; the correct answer is {question.correct_answer}. "
            f"{question.explanation or ''}"
        ).strip()

    def narrate_summary(self, metrics: Dict[str, Any], candidate_name: Optional[str], roles: str) -> Optional[str]:
        breakdown = metrics.get("breakdown", {})
        lines = [
            "## Overall Assessment",
            f"{candidate_name or 'The candidate'} scored {metrics.get('total_score', 0)}/"
            f"{metrics.get('max_score', 0)} ({metrics.get('percentage', 0)}%) on the {roles} assessment.",
            "",
            "## Performance by Difficulty",
        ]
        for difficulty in DIFFICULTIES:
            bucket = breakdown.get(difficulty, {})
            lines.append(
                f"- {difficulty.capitalize()}: {bucket.get('correct', 0)} correct, "
                f"{bucket.get('score', 0)}/{bucket.get('total', 0)} points"
            )
        lines += [
            "",
            f"Average time per question: {metrics.get('average_time_taken', 0)} seconds.",
            "",
            "## Final Recommendation",
            metrics.get("recommendation", ""),
        ]
        return "\n".join(lines)
