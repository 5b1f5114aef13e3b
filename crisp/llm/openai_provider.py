"""
OpenAI provider implementation.
"""
import logging
from typing import Optional, Dict, List
from openai import OpenAI, OpenAIError

from crisp.core.config import OPENAI_API_KEY
from crisp.llm.provider import LLMProvider, LLMProviderError, LLMResponse

logger = logging.getLogger(__name__)

# Model pricing per 1M tokens (input/output)
MODEL_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
}

# Seconds before a question/feedback request is abandoned
REQUEST_TIMEOUT_SECONDS = 30.0


class OpenAIProvider(LLMProvider):
    """OpenAI provider using official OpenAI SDK."""
    
    def __init__(self, api_key: Optional[str] = None, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.api_key = api_key or OPENAI_API_KEY
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not configured")
        self.client = OpenAI(api_key=self.api_key, timeout=timeout, max_retries=1)
        logger.info("OpenAI provider initialized")
    
    def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a chat completion."""
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens or 800,
                **kwargs
            )
        except OpenAIError as e:
            logger.error(f"OpenAI API error: {type(e).__name__}: {e}")
            raise LLMProviderError(str(e)) from e
        
        content = response.choices[0].message.content or ""
        tokens_in = response.usage.prompt_tokens if response.usage else 0
        tokens_out = response.usage.completion_tokens if response.usage else 0
        
        return LLMResponse(
            content=content,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            model=model,
            cost_estimate=self.estimate_cost(tokens_in, tokens_out, model),
            metadata={"finish_reason": response.choices[0].finish_reason},
        )
    
    def estimate_cost(self, tokens_in: int, tokens_out: int, model: str) -> float:
        """Estimate cost in USD."""
        pricing = MODEL_PRICING.get(model, MODEL_PRICING["gpt-4o-mini"])
        return (tokens_in / 1_000_000) * pricing["input"] + (tokens_out / 1_000_000) * pricing["output"]
