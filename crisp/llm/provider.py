"""
Chat-completion interface behind the LLM question oracle.

The oracle only needs one blocking call per question, per feedback line and
per final narrative, so providers expose a single chat() method.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class LLMResponse:
    """One completion plus the token accounting the oracle logs."""
    content: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""
    cost_estimate: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def truncated(self) -> bool:
        """True when the model stopped on max_tokens (a JSON question is then likely cut off)."""
        return self.metadata.get("finish_reason") == "length"


class LLMProviderError(Exception):
    """Raised for any provider-side failure (network, quota, timeout, refusal)."""


class LLMProvider(ABC):

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Run one chat completion.

        Args:
            messages: System and user messages ({"role": ..., "content": ...})
            model: Model identifier from the feature router
            temperature: Sampling temperature from the feature router
            max_tokens: Completion budget

        Raises:
            LLMProviderError: The completion could not be produced
        """
        pass

    def estimate_cost(self, tokens_in: int, tokens_out: int, model: str) -> float:
        return 0.0
