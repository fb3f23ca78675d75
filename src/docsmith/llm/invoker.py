"""Resilient model invocation.

``ModelInvoker`` wraps an ``AsyncLLMProvider`` with:

- bounded retries with a fixed delay between attempts
- two-tier model selection for Extract calls (efficient model first,
  powerful model as fallback; large prompts go straight to the powerful one)
- a bounded tool loop for PromptWithTools calls, with a tool-free summary
  call when the loop runs out of turns
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel, ValidationError
from rich.console import Console

from ..config import LLMConfig
from ..errors import ProviderError
from .providers import AsyncLLMProvider
from .summary import build_summary_prompt
from .tools import AgentTool
from .types import InvocationResult, ReActTrace, TokenUsage

logger = logging.getLogger("docsmith.llm.invoker")
console = Console()

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R")

# Prompts at or above this many characters skip the efficient model.
LARGE_PROMPT_THRESHOLD = 32 * 1024


class _Stage(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


def evaluate_befitting_model(llm: LLMConfig, system: str, user: str) -> tuple[str, str | None]:
    """Return ``(model, fallback_model)`` for an Extract call."""
    if len(system) + len(user) < LARGE_PROMPT_THRESHOLD:
        return llm.model_efficient, llm.model_powerful
    return llm.model_powerful, None


def annotate_with_error(user: str, error: BaseException) -> str:
    """Append the previous failure to a prompt so the next model can avoid it."""
    return (
        f"{user}\n\n**Note** A previous attempt at this request failed with the "
        f"error \"{error}\". Make sure this response avoids that error."
    )


class ModelInvoker:
    """Calls the model in one of three modes, with retry and fallback."""

    def __init__(
        self,
        provider: AsyncLLMProvider,
        llm: LLMConfig,
        *,
        tools: list[AgentTool] | None = None,
    ):
        self.provider = provider
        self.llm = llm
        self.tools = tools or []

    # ── Retry ─────────────────────────────────────────────────────────

    async def _retry(self, op: Callable[[], Awaitable[R]], *, model: str) -> R:
        """Run *op* up to ``retry_attempts`` times with a fixed delay."""
        attempts = max(self.llm.retry_attempts, 1)
        delay = self.llm.retry_delay_ms / 1000
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await op()
            except Exception as exc:
                last_exc = exc
                logger.warning(
                    "LLM request to %s failed (attempt %d/%d): %s",
                    model, attempt, attempts, exc,
                )
                if attempt < attempts:
                    console.print(
                        f"  [yellow]↻ retry {attempt}/{attempts} ({model}) in {delay:g}s[/]"
                    )
                    await asyncio.sleep(delay)
        raise ProviderError(
            f"LLM request failed after {attempts} attempts: {last_exc}",
            attempts=attempts,
            model=model,
        ) from last_exc

    # ── Extract ───────────────────────────────────────────────────────

    async def extract(self, system: str, user: str, output_model: type[M]) -> InvocationResult[M]:
        """Structured call validated into *output_model*.

        Walks the {PRIMARY, FALLBACK} states: each state gets a full retry
        budget; exhausting the primary switches to the fallback model with
        the error appended to the prompt.
        """
        model, fallback = evaluate_befitting_model(self.llm, system, user)
        schema = output_model.model_json_schema()
        stage = _Stage.PRIMARY
        prompt = user

        while True:
            current = model

            async def attempt() -> tuple[M, TokenUsage]:
                data, usage = await self.provider.extract(system, prompt, current, schema)
                try:
                    return output_model.model_validate(data), usage
                except ValidationError as exc:
                    raise ValueError(f"Response does not match {output_model.__name__}: {exc}") from exc

            try:
                value, usage = await self._retry(attempt, model=current)
                return InvocationResult(value=value, token_usage=usage, model_name=current)
            except ProviderError as exc:
                if stage is _Stage.FALLBACK or fallback is None:
                    console.print(
                        f"  [red]✗ {current} failed after {exc.attempts} attempts[/]"
                    )
                    raise
                console.print(
                    f"  [red]✗ {current} failed after {exc.attempts} attempts, "
                    f"falling back to {fallback}[/]"
                )
                logger.warning("Falling back from %s to %s: %s", current, fallback, exc)
                stage = _Stage.FALLBACK
                model, fallback = fallback, None
                prompt = annotate_with_error(user, exc.__cause__ or exc)

    # ── Prompt ────────────────────────────────────────────────────────

    async def prompt(self, system: str, user: str) -> InvocationResult[str]:
        """Single-shot free-text call without tools."""
        model = self.llm.model_efficient

        async def attempt() -> tuple[str, TokenUsage]:
            return await self.provider.prompt_once(system, user, model)

        text, usage = await self._retry(attempt, model=model)
        return InvocationResult(value=text, token_usage=usage, model_name=model)

    # ── PromptWithTools ───────────────────────────────────────────────

    async def prompt_with_tools(self, system: str, user: str) -> InvocationResult[ReActTrace]:
        """Bounded tool loop; falls back to summary reasoning on cut-off."""
        model = self.llm.model_efficient
        max_iterations = self.llm.react_max_iterations

        async def attempt():
            return await self.provider.prompt_multi_turn(
                system, user, model, self.tools, max_iterations,
            )

        outcome = await self._retry(attempt, model=model)

        if outcome.completed:
            trace = ReActTrace(
                final_text=outcome.text,
                iterations_used=outcome.iterations_used,
                tool_calls=outcome.tool_calls,
                conversation=outcome.conversation,
                token_usage=outcome.token_usage,
            )
            return InvocationResult(value=trace, token_usage=trace.token_usage, model_name=model)

        console.print(
            f"  [yellow]⚠ tool loop reached max iterations ({max_iterations})[/]"
        )
        partial = outcome.text or "The tool loop was interrupted before producing a complete response."
        trace = ReActTrace(
            final_text=f"{partial}\n\n[interrupted: max iterations ({max_iterations}) reached]",
            iterations_used=outcome.iterations_used,
            stopped_by_max_depth=True,
            tool_calls=outcome.tool_calls,
            conversation=outcome.conversation,
            token_usage=outcome.token_usage,
        )

        if self.llm.enable_summary_reasoning:
            trace = await self._summarize(system, user, trace, model)
        return InvocationResult(value=trace, token_usage=trace.token_usage, model_name=model)

    async def _summarize(self, system: str, user: str, trace: ReActTrace, model: str) -> ReActTrace:
        summary_prompt = build_summary_prompt(system, user, trace.conversation, trace.tool_calls)

        async def attempt() -> tuple[str, TokenUsage]:
            return await self.provider.prompt_once(system, summary_prompt, model)

        try:
            text, usage = await self._retry(attempt, model=model)
        except ProviderError as exc:
            logger.warning("Summary reasoning failed, returning partial result: %s", exc)
            console.print("  [yellow]⚠ summary reasoning failed, keeping partial result[/]")
            return trace

        console.print("  [green]✓ summary reasoning complete[/]")
        return trace.model_copy(update={
            "final_text": text,
            "summarized": True,
            "token_usage": trace.token_usage + usage,
        })

    # ── Misc ──────────────────────────────────────────────────────────

    async def check_connection(self) -> bool:
        """Issue a tiny prompt to verify credentials and connectivity."""
        try:
            await self.provider.prompt_once(
                "You are a connectivity check.", "Reply with OK.", self.llm.model_efficient,
            )
        except Exception as exc:
            logger.error("LLM connection check failed: %s", exc)
            return False
        return True

    def describe(self) -> dict[str, Any]:
        return {
            "provider": self.provider.provider_name,
            "model_efficient": self.llm.model_efficient,
            "model_powerful": self.llm.model_powerful,
            "tools": [t.name for t in self.tools],
        }
