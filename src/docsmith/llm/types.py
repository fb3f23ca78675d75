"""Data models shared by providers, the invoker and the cache."""

from __future__ import annotations

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

# USD per 1K tokens (input, output). Rough list prices; used only for the
# "cost saved" figure in cache reports.
_PRICING: dict[str, tuple[float, float]] = {
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-4o": (0.0025, 0.01),
    "gpt-4.1": (0.002, 0.008),
    "claude": (0.003, 0.015),
}
_DEFAULT_PRICING = (0.001, 0.002)


class TokenUsage(BaseModel):
    """Token counts of a single model call."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def estimate_cost(self, model_name: str = "") -> float:
        """Estimated USD cost of this usage on *model_name*."""
        rates = _DEFAULT_PRICING
        name = model_name.lower()
        # Longest prefix wins so "gpt-4o-mini" is not priced as "gpt-4o".
        for prefix in sorted(_PRICING, key=len, reverse=True):
            if name.startswith(prefix):
                rates = _PRICING[prefix]
                break
        return (self.input_tokens / 1000) * rates[0] + (self.output_tokens / 1000) * rates[1]

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class CallMode(str, Enum):
    """How an agent talks to the model."""
    EXTRACT = "extract"                      # schema-typed JSON result
    PROMPT = "prompt"                        # single-shot free text
    PROMPT_WITH_TOOLS = "prompt_with_tools"  # bounded ReAct tool loop


class InvocationResult(BaseModel, Generic[T]):
    """Value returned by the model invoker plus its cost."""
    value: T
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    model_name: str = ""


class MultiTurnOutcome(BaseModel):
    """What a provider's multi-turn loop produced.

    ``completed`` is False when the loop ran out of turns; ``conversation``
    then holds the partial transcript and ``tool_calls`` every call issued,
    in order, formatted as ``name(arguments)``.
    """
    completed: bool
    text: str = ""
    iterations_used: int = 0
    tool_calls: list[str] = Field(default_factory=list)
    conversation: list[dict[str, Any]] = Field(default_factory=list)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)


class ReActTrace(BaseModel):
    """Result of a PromptWithTools call."""
    final_text: str
    iterations_used: int = 0
    stopped_by_max_depth: bool = False
    tool_calls: list[str] = Field(default_factory=list)
    conversation: list[dict[str, Any]] = Field(default_factory=list)
    summarized: bool = False
    token_usage: TokenUsage = Field(default_factory=TokenUsage)


class CacheEntry(BaseModel, Generic[T]):
    """On-disk cache record."""
    data: T
    timestamp: int
    prompt_hash: str
    token_usage: Optional[TokenUsage] = None
    model_name: Optional[str] = None
