"""Cache-checked model calls on behalf of agents.

Every agent call goes through ``dispatch``, which picks the invoker method
for the call mode. Results are cached under ``params.cache_scope`` keyed by
the full rendered prompt; ``force_regenerate`` skips cache reads but still
refreshes the stored entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from rich.console import Console

from ..llm.types import CallMode

if TYPE_CHECKING:
    from .context import GeneratorContext

logger = logging.getLogger("docsmith.agents.executor")
console = Console()


@dataclass
class AgentExecuteParams:
    prompt_sys: str
    prompt_user: str
    cache_scope: str
    log_tag: str

    @property
    def cache_key(self) -> str:
        return f"{self.prompt_sys}\n\n{self.prompt_user}"


def replace_time_placeholders(content: str) -> str:
    now = datetime.now(timezone.utc)
    return (
        content
        .replace("__CURRENT_UTC_TIME__", f"{now:%Y-%m-%d %H:%M:%S} (UTC)")
        .replace("__CURRENT_TIMESTAMP__", str(int(now.timestamp())))
    )


def _cached(ctx: "GeneratorContext", params: AgentExecuteParams, model: Any) -> Any:
    if ctx.config.force_regenerate:
        return None
    return ctx.cache.get(params.cache_scope, params.cache_key, model)


async def extract(ctx: "GeneratorContext", params: AgentExecuteParams, output_model: Any) -> Any:
    cached = _cached(ctx, params, output_model)
    if cached is not None:
        logger.debug("Cache hit for %s", params.log_tag)
        return cached

    console.print(f"   [dim]→ {params.log_tag}: extracting[/]")
    result = await ctx.invoker.extract(params.prompt_sys, params.prompt_user, output_model)
    ctx.cache.set_with_tokens(
        params.cache_scope, params.cache_key, result.value, result.token_usage, result.model_name,
    )
    return result.value


async def prompt(ctx: "GeneratorContext", params: AgentExecuteParams) -> str:
    cached = _cached(ctx, params, str)
    if cached is not None:
        return cached

    console.print(f"   [dim]→ {params.log_tag}: prompting[/]")
    result = await ctx.invoker.prompt(params.prompt_sys, params.prompt_user)
    ctx.cache.set_with_tokens(
        params.cache_scope, params.cache_key, result.value, result.token_usage, result.model_name,
    )
    return result.value


async def prompt_with_tools(ctx: "GeneratorContext", params: AgentExecuteParams) -> str:
    cached = _cached(ctx, params, str)
    if cached is not None:
        return cached

    console.print(f"   [dim]→ {params.log_tag}: running tool loop[/]")
    result = await ctx.invoker.prompt_with_tools(params.prompt_sys, params.prompt_user)
    trace = result.value
    if trace.stopped_by_max_depth and not trace.summarized:
        logger.warning(
            "%s: tool loop truncated after %d iterations (%d tool calls)",
            params.log_tag, trace.iterations_used, len(trace.tool_calls),
        )
    ctx.cache.set_with_tokens(
        params.cache_scope, params.cache_key, trace.final_text, result.token_usage, result.model_name,
    )
    return trace.final_text


async def dispatch(
    ctx: "GeneratorContext",
    mode: CallMode,
    params: AgentExecuteParams,
    output_model: Any,
) -> Any:
    """Run *params* in *mode*; text results get their time placeholders filled."""
    if mode is CallMode.EXTRACT:
        return await extract(ctx, params, output_model)
    if mode is CallMode.PROMPT:
        return replace_time_placeholders(await prompt(ctx, params))
    if mode is CallMode.PROMPT_WITH_TOOLS:
        return replace_time_placeholders(await prompt_with_tools(ctx, params))
    raise ValueError(f"Unknown call mode: {mode!r}")
