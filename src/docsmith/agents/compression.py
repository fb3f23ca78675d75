"""Model-assisted condensing of prompt sections that exceed a token budget."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.console import Console

from ..errors import ProviderError
from ..llm.tokens import estimate_tokens

if TYPE_CHECKING:
    from .context import GeneratorContext

logger = logging.getLogger("docsmith.agents.compression")
console = Console()

COMPRESSION_SYSTEM_PROMPT = (
    "You condense technical reference material for another model. Keep every "
    "file path, identifier, interface name, dependency and number. Remove "
    "repetition and prose that adds no facts. Output only the condensed text."
)


@dataclass
class CompressionConfig:
    enabled: bool = True
    # Sections estimated above this many tokens are condensed.
    max_tokens: int = 64_000
    target_ratio: float = 0.7


@dataclass
class CompressionResult:
    content: str
    was_compressed: bool
    original_tokens: int
    compressed_tokens: int

    @property
    def summary(self) -> str:
        if not self.was_compressed or not self.original_tokens:
            return "not compressed"
        ratio = 100 * (1 - self.compressed_tokens / self.original_tokens)
        return (
            f"compressed {self.original_tokens} -> {self.compressed_tokens} tokens "
            f"({ratio:.1f}% smaller)"
        )


class PromptCompressor:
    """Ask the model to shorten oversized content; cache what it returns."""

    def __init__(self, config: CompressionConfig | None = None) -> None:
        self.config = config or CompressionConfig()

    async def compress_if_needed(
        self, ctx: "GeneratorContext", content: str, content_type: str,
    ) -> CompressionResult:
        original_tokens = estimate_tokens(content)
        if not self.config.enabled or original_tokens <= self.config.max_tokens:
            return CompressionResult(content, False, original_tokens, original_tokens)

        cached = ctx.cache.get_compression_cache(content, content_type)
        if cached is not None:
            return CompressionResult(cached, True, original_tokens, estimate_tokens(cached))

        target = int(original_tokens * self.config.target_ratio)
        user = (
            f"Condense the following {content_type} to about {target} tokens.\n\n"
            f"{content}"
        )
        try:
            result = await ctx.invoker.prompt(COMPRESSION_SYSTEM_PROMPT, user)
        except ProviderError as exc:
            logger.warning("Compression of %s failed, using original: %s", content_type, exc)
            return CompressionResult(content, False, original_tokens, original_tokens)

        compressed = result.value.strip()
        if not compressed:
            return CompressionResult(content, False, original_tokens, original_tokens)
        ctx.cache.set_compression_cache(content, content_type, compressed)
        outcome = CompressionResult(compressed, True, original_tokens, estimate_tokens(compressed))
        console.print(f"   [cyan]≡ {content_type}: {outcome.summary}[/]")
        return outcome
