"""Cache hit/miss accounting and the savings report."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from pydantic import BaseModel, Field
from rich.console import Console

from ..llm.types import TokenUsage

console = Console()

# Rough USD value of one second of model time, for per-category figures.
_COST_PER_SECOND = 0.00001


class CategoryPerformanceStats(BaseModel):
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    time_saved: float = 0.0
    cost_saved: float = 0.0


class CachePerformanceReport(BaseModel):
    """Aggregated cache effectiveness for one run."""
    hit_rate: float = 0.0
    total_operations: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    cache_writes: int = 0
    cache_errors: int = 0
    inference_time_saved: float = 0.0
    cost_saved: float = 0.0
    performance_improvement: float = 0.0
    input_tokens_saved: int = 0
    output_tokens_saved: int = 0
    category_stats: dict[str, CategoryPerformanceStats] = Field(default_factory=dict)


@dataclass
class _CategoryCounters:
    hits: int = 0
    misses: int = 0
    time_saved: float = 0.0


class CachePerformanceMonitor:
    """Thread-safe counters fed by ``CacheManager``.

    Set ``quiet=True`` to suppress the per-operation progress lines.
    """

    def __init__(self, *, quiet: bool = False) -> None:
        self.quiet = quiet
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._writes = 0
        self._errors = 0
        self._time_saved = 0.0
        self._cost_saved = 0.0
        self._input_saved = 0
        self._output_saved = 0
        self._categories: dict[str, _CategoryCounters] = {}

    def record_cache_hit(
        self,
        category: str,
        inference_time_saved: float,
        token_usage: TokenUsage | None = None,
        model_name: str = "",
    ) -> None:
        cost = token_usage.estimate_cost(model_name) if token_usage else 0.0
        with self._lock:
            self._hits += 1
            cat = self._categories.setdefault(category, _CategoryCounters())
            cat.hits += 1
            if token_usage is not None:
                self._time_saved += inference_time_saved
                self._cost_saved += cost
                self._input_saved += token_usage.input_tokens
                self._output_saved += token_usage.output_tokens
                cat.time_saved += inference_time_saved

        if self.quiet:
            return
        if token_usage is not None:
            console.print(
                f"   [green]● cache hit[/] [{category}] saved {inference_time_saved:.2f}s, "
                f"{token_usage.input_tokens}+{token_usage.output_tokens} tokens, ~${cost:.4f}"
            )
        else:
            console.print(f"   [green]● cache hit[/] [{category}]")

    def record_cache_miss(self, category: str) -> None:
        with self._lock:
            self._misses += 1
            self._categories.setdefault(category, _CategoryCounters()).misses += 1
        if not self.quiet:
            console.print(f"   [dim]○ cache miss [{category}], calling the model[/]")

    def record_cache_write(self, category: str) -> None:
        with self._lock:
            self._writes += 1
        if not self.quiet:
            console.print(f"   [dim]↓ cached [{category}][/]")

    def record_cache_error(self, category: str, error: str) -> None:
        with self._lock:
            self._errors += 1
        if not self.quiet:
            console.print(f"   [red]✗ cache error [{category}]: {error}[/]")

    def generate_report(self) -> CachePerformanceReport:
        with self._lock:
            hits, misses = self._hits, self._misses
            total = hits + misses
            categories = {
                name: CategoryPerformanceStats(
                    hits=c.hits,
                    misses=c.misses,
                    hit_rate=c.hits / (c.hits + c.misses) if c.hits + c.misses else 0.0,
                    time_saved=c.time_saved,
                    cost_saved=c.time_saved * _COST_PER_SECOND,
                )
                for name, c in self._categories.items()
            }
            return CachePerformanceReport(
                hit_rate=hits / total if total else 0.0,
                total_operations=total,
                cache_hits=hits,
                cache_misses=misses,
                cache_writes=self._writes,
                cache_errors=self._errors,
                inference_time_saved=self._time_saved,
                cost_saved=self._cost_saved,
                performance_improvement=(hits / total) * 100 if misses else 0.0,
                input_tokens_saved=self._input_saved,
                output_tokens_saved=self._output_saved,
                category_stats=categories,
            )
