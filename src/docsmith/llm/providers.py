"""Async LLM provider abstraction.

Supports OpenAI, Ollama and Azure OpenAI (all through the OpenAI SDK) and
Anthropic (Claude). Every provider exposes the same three calls so the
invoker can use any backend without code changes:

- ``extract``: JSON-mode call validated by the caller against a schema
- ``prompt_once``: single-shot free-text call, no tools
- ``prompt_multi_turn``: bounded tool-calling loop

The model name is passed per call, since the invoker switches between an
efficient and a powerful model.

Usage::

    from docsmith.llm.providers import get_async_provider

    llm = get_async_provider("openai", api_key="sk-...")
    text, usage = await llm.prompt_once("You are helpful.", "Explain asyncio.", "gpt-4o-mini")
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any

from ..config import LLMConfig
from .tokens import estimate_token_usage
from .tools import AgentTool
from .types import MultiTurnOutcome, TokenUsage

logger = logging.getLogger("docsmith.llm.providers")

DEFAULT_PROVIDER = "openai"
DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 8192
DEFAULT_TIMEOUT = 300

_JSON_HINT = (
    "\n\nIMPORTANT: You MUST respond with valid JSON only. "
    "No markdown fences, no commentary, just the JSON object."
)


def _schema_hint(schema: dict[str, Any]) -> str:
    return (
        _JSON_HINT
        + "\nThe JSON object must conform to this JSON schema:\n"
        + json.dumps(schema, ensure_ascii=False)
    )


def _format_tool_call(name: str, arguments: Any) -> str:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments, ensure_ascii=False)
    return f"{name}({arguments})"


def _tool_result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


# ══════════════════════════════════════════════════════════════════════════
# Base class
# ══════════════════════════════════════════════════════════════════════════


class AsyncLLMProvider(ABC):
    """Async base class for all providers.

    Providers raise on any transport or decoding failure; retry and
    fallback belong to ``ModelInvoker``.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.extra = kwargs

    # ── Public API ────────────────────────────────────────────────────

    @abstractmethod
    async def extract(
        self, system: str, user: str, model: str, schema: dict[str, Any],
    ) -> tuple[dict[str, Any], TokenUsage]:
        """JSON-mode call; returns the decoded object and token usage."""

    @abstractmethod
    async def prompt_once(
        self, system: str, user: str, model: str,
    ) -> tuple[str, TokenUsage]:
        """Single-shot text completion."""

    @abstractmethod
    async def prompt_multi_turn(
        self,
        system: str,
        user: str,
        model: str,
        tools: list[AgentTool],
        max_iterations: int,
    ) -> MultiTurnOutcome:
        """Run at most *max_iterations* model turns, executing tool calls."""

    # ── Helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _parse_json(raw: str) -> dict[str, Any]:
        """Parse JSON from LLM output, stripping markdown code fences."""
        text = raw.strip()
        if text.startswith("```"):
            lines = text.splitlines()
            if lines[-1].strip() == "```":
                text = "\n".join(lines[1:-1])
            else:
                text = "\n".join(lines[1:])
            text = text.strip()
        result = json.loads(text)
        if isinstance(result, dict):
            return result
        # If the model returned a list, wrap it
        return {"items": result}

    @property
    def provider_name(self) -> str:
        return self.__class__.__name__.replace("Async", "").replace("Provider", "").lower()


# ══════════════════════════════════════════════════════════════════════════
# OpenAI and compatible endpoints
# ══════════════════════════════════════════════════════════════════════════


class AsyncOpenAIProvider(AsyncLLMProvider):
    """Standard OpenAI API (also used for generic OpenAI-compatible servers)."""

    supports_json_mode = True

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self._client = self._make_client()

    def _make_client(self) -> Any:
        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise ImportError(
                "OpenAI provider requires the 'openai' package. "
                "Install with: pip install openai"
            )
        key = self.api_key or os.environ.get("OPENAI_API_KEY", "")
        if not key:
            raise RuntimeError("No OpenAI API key. Set OPENAI_API_KEY.")
        ctor_kwargs: dict[str, Any] = {"api_key": key, "timeout": self.timeout}
        if self.base_url:
            ctor_kwargs["base_url"] = self.base_url
        return AsyncOpenAI(**ctor_kwargs)

    async def _create(self, model: str, messages: list[dict[str, Any]], **kwargs: Any) -> Any:
        return await self._client.chat.completions.create(
            model=model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            messages=messages,
            **kwargs,
        )

    @staticmethod
    def _usage(resp: Any, prompt: str, completion: str) -> TokenUsage:
        usage = getattr(resp, "usage", None)
        if usage is None or usage.prompt_tokens is None:
            return estimate_token_usage(prompt, completion)
        return TokenUsage(
            input_tokens=usage.prompt_tokens or 0,
            output_tokens=usage.completion_tokens or 0,
        )

    async def extract(self, system, user, model, schema):
        json_system = system + _schema_hint(schema)
        messages = [
            {"role": "system", "content": json_system},
            {"role": "user", "content": user},
        ]
        if self.supports_json_mode:
            resp = await self._create(model, messages, response_format={"type": "json_object"})
        else:
            resp = await self._create(model, messages)
        raw = resp.choices[0].message.content or "{}"
        return self._parse_json(raw), self._usage(resp, json_system + user, raw)

    async def prompt_once(self, system, user, model):
        resp = await self._create(model, [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ])
        text = resp.choices[0].message.content or ""
        return text, self._usage(resp, system + user, text)

    async def prompt_multi_turn(self, system, user, model, tools, max_iterations):
        by_name = {t.name: t for t in tools}
        tool_specs = [
            {
                "type": "function",
                "function": {
                    "name": t.contract.name,
                    "description": t.contract.description,
                    "parameters": t.contract.json_schema(),
                },
            }
            for t in tools
        ]
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        transcript: list[dict[str, Any]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        calls: list[str] = []
        total = TokenUsage()
        last_text = ""

        for iteration in range(1, max_iterations + 1):
            kwargs: dict[str, Any] = {"tools": tool_specs} if tool_specs else {}
            resp = await self._create(model, messages, **kwargs)
            msg = resp.choices[0].message
            text = msg.content or ""
            total = total + self._usage(resp, json.dumps(messages, default=str), text)
            if text:
                last_text = text

            if not msg.tool_calls:
                transcript.append({"role": "assistant", "content": text})
                return MultiTurnOutcome(
                    completed=True, text=text, iterations_used=iteration,
                    tool_calls=calls, conversation=transcript, token_usage=total,
                )

            messages.append({
                "role": "assistant",
                "content": text or None,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.function.name, "arguments": tc.function.arguments},
                    }
                    for tc in msg.tool_calls
                ],
            })
            transcript.append({"role": "assistant", "content": text})
            for tc in msg.tool_calls:
                name, raw_args = tc.function.name, tc.function.arguments or "{}"
                calls.append(_format_tool_call(name, raw_args))
                result = await _run_tool(by_name, name, raw_args)
                messages.append({"role": "tool", "tool_call_id": tc.id, "content": result})
                transcript.append({"role": "tool", "name": name, "content": result})

        return MultiTurnOutcome(
            completed=False, text=last_text, iterations_used=max_iterations,
            tool_calls=calls, conversation=transcript, token_usage=total,
        )


class AsyncOllamaProvider(AsyncOpenAIProvider):
    """Ollama through its OpenAI-compatible endpoint."""

    def _make_client(self) -> Any:
        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise ImportError("Ollama provider requires the 'openai' package.")
        if not self.base_url:
            self.base_url = "http://localhost:11434/v1"
        return AsyncOpenAI(
            api_key=self.api_key or "ollama",
            base_url=self.base_url,
            timeout=self.timeout,
        )


class AsyncAzureProvider(AsyncOpenAIProvider):
    """Azure OpenAI deployments; *model* is the deployment name."""

    def _make_client(self) -> Any:
        try:
            from openai import AsyncAzureOpenAI
        except ImportError:
            raise ImportError("Azure provider requires the 'openai' package.")
        key = self.api_key or os.environ.get("AZURE_OPENAI_API_KEY", "")
        if not key:
            raise RuntimeError("No Azure OpenAI API key. Set AZURE_OPENAI_API_KEY.")
        endpoint = self.base_url or os.environ.get("AZURE_OPENAI_ENDPOINT", "")
        if not endpoint:
            raise RuntimeError("Azure provider requires api_base_url or AZURE_OPENAI_ENDPOINT.")
        api_version = self.extra.get(
            "api_version",
            os.environ.get("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
        )
        return AsyncAzureOpenAI(
            api_key=key,
            azure_endpoint=endpoint,
            api_version=api_version,
            timeout=self.timeout,
        )


# ══════════════════════════════════════════════════════════════════════════
# Anthropic
# ══════════════════════════════════════════════════════════════════════════


class AsyncAnthropicProvider(AsyncLLMProvider):
    """Anthropic Messages API."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "Anthropic provider requires the 'anthropic' package. "
                "Install with: pip install anthropic"
            )
        key = self.api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        if not key:
            raise RuntimeError("No Anthropic API key. Set ANTHROPIC_API_KEY.")
        ctor_kwargs: dict[str, Any] = {"api_key": key, "timeout": self.timeout}
        if self.base_url:
            ctor_kwargs["base_url"] = self.base_url
        self._client = AsyncAnthropic(**ctor_kwargs)

    async def _create(self, model: str, system: str, messages: list[dict[str, Any]], **kwargs: Any) -> Any:
        return await self._client.messages.create(
            model=model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=messages,
            **kwargs,
        )

    @staticmethod
    def _usage(resp: Any) -> TokenUsage:
        return TokenUsage(
            input_tokens=resp.usage.input_tokens,
            output_tokens=resp.usage.output_tokens,
        )

    @staticmethod
    def _text(resp: Any) -> str:
        return "".join(b.text for b in resp.content if b.type == "text")

    async def extract(self, system, user, model, schema):
        resp = await self._create(
            model, system + _schema_hint(schema), [{"role": "user", "content": user}],
        )
        raw = self._text(resp) or "{}"
        return self._parse_json(raw), self._usage(resp)

    async def prompt_once(self, system, user, model):
        resp = await self._create(model, system, [{"role": "user", "content": user}])
        return self._text(resp), self._usage(resp)

    async def prompt_multi_turn(self, system, user, model, tools, max_iterations):
        by_name = {t.name: t for t in tools}
        tool_specs = [
            {
                "name": t.contract.name,
                "description": t.contract.description,
                "input_schema": t.contract.json_schema(),
            }
            for t in tools
        ]
        messages: list[dict[str, Any]] = [{"role": "user", "content": user}]
        transcript: list[dict[str, Any]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        calls: list[str] = []
        total = TokenUsage()
        last_text = ""

        for iteration in range(1, max_iterations + 1):
            kwargs: dict[str, Any] = {"tools": tool_specs} if tool_specs else {}
            resp = await self._create(model, system, messages, **kwargs)
            total = total + self._usage(resp)
            text = self._text(resp)
            if text:
                last_text = text
            transcript.append({"role": "assistant", "content": text})

            tool_uses = [b for b in resp.content if b.type == "tool_use"]
            if not tool_uses:
                return MultiTurnOutcome(
                    completed=True, text=text, iterations_used=iteration,
                    tool_calls=calls, conversation=transcript, token_usage=total,
                )

            messages.append({
                "role": "assistant",
                "content": [b.model_dump(exclude_none=True) for b in resp.content],
            })
            results: list[dict[str, Any]] = []
            for block in tool_uses:
                calls.append(_format_tool_call(block.name, block.input))
                result = await _run_tool(by_name, block.name, block.input)
                results.append({"type": "tool_result", "tool_use_id": block.id, "content": result})
                transcript.append({"role": "tool", "name": block.name, "content": result})
            messages.append({"role": "user", "content": results})

        return MultiTurnOutcome(
            completed=False, text=last_text, iterations_used=max_iterations,
            tool_calls=calls, conversation=transcript, token_usage=total,
        )


async def _run_tool(by_name: dict[str, AgentTool], name: str, arguments: Any) -> str:
    tool = by_name.get(name)
    if tool is None:
        return _tool_result_text({"error": f"Unknown tool: {name}"})
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments or "{}")
        except json.JSONDecodeError as exc:
            return _tool_result_text({"error": f"Invalid arguments: {exc}"})
    logger.debug("Tool call %s(%s)", name, arguments)
    return _tool_result_text(await tool.call(arguments or {}))


# ══════════════════════════════════════════════════════════════════════════
# Factory
# ══════════════════════════════════════════════════════════════════════════

_ASYNC_PROVIDERS: dict[str, type[AsyncLLMProvider]] = {
    "openai": AsyncOpenAIProvider,
    "anthropic": AsyncAnthropicProvider,
    "claude": AsyncAnthropicProvider,
    "ollama": AsyncOllamaProvider,
    "azure": AsyncAzureProvider,
}

SUPPORTED_PROVIDERS = sorted(set(_ASYNC_PROVIDERS.keys()) - {"claude"})


def get_async_provider(
    provider: str = DEFAULT_PROVIDER,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> AsyncLLMProvider:
    """Create an async LLM provider instance.

    Parameters
    ----------
    provider
        Provider name: openai, anthropic, ollama, azure.
    api_key
        API key (falls back to provider-specific env var).
    base_url
        Custom API endpoint.
    """
    name = provider.lower().strip()
    cls = _ASYNC_PROVIDERS.get(name)
    if cls is None:
        raise ValueError(
            f"Unknown provider '{provider}'. "
            f"Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    return cls(
        api_key=api_key,
        base_url=base_url,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
        **kwargs,
    )


def provider_from_config(llm: LLMConfig) -> AsyncLLMProvider:
    """Build the provider described by an ``LLMConfig``."""
    return get_async_provider(
        llm.provider,
        api_key=llm.resolve_api_key(),
        base_url=llm.api_base_url,
        temperature=llm.temperature,
        max_tokens=llm.max_tokens,
        timeout=llm.timeout_seconds,
    )
