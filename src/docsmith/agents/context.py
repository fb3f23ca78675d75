"""Per-run service handle passed to every agent.

``GeneratorContext`` owns the one ``MemoryStore``, ``CacheManager`` and
``ModelInvoker`` of a run, plus phase timings. Agents receive it
explicitly; nothing here is a module-level singleton.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from ..cache import CacheManager
from ..config import Config
from ..llm.invoker import ModelInvoker
from ..memory import MemoryStore


class MemoryScope:
    PREPROCESS = "preprocess"
    STUDIES_RESEARCH = "studies_research"
    DOCUMENTATION = "documentation"


class ScopedKeys:
    ORIGINAL_DOCUMENT = "original_document"
    PROJECT_STRUCTURE = "project_structure"
    CODE_INSIGHTS = "code_insights"
    RELATIONSHIPS = "relationships"


@dataclass
class GeneratorContext:
    config: Config
    invoker: ModelInvoker
    cache: CacheManager
    memory: MemoryStore = field(default_factory=MemoryStore)
    phase_durations: dict[str, float] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)

    # -- Memory -------------------------------------------------------------

    def store_to_memory(self, scope: str, key: str, value: Any) -> None:
        self.memory.store(scope, key, value)

    def get_from_memory(self, scope: str, key: str, model: Any = None) -> Any:
        return self.memory.get(scope, key, model)

    def has_memory_data(self, scope: str, key: str) -> bool:
        return self.memory.has(scope, key)

    # -- Research results ---------------------------------------------------

    def store_research(self, agent_type: str, result: Any) -> None:
        self.memory.store(MemoryScope.STUDIES_RESEARCH, agent_type, result)

    def get_research(self, agent_type: str, model: Any = None) -> Any:
        return self.memory.get(MemoryScope.STUDIES_RESEARCH, agent_type, model)

    def has_research(self, agent_type: str) -> bool:
        return self.memory.has(MemoryScope.STUDIES_RESEARCH, agent_type)

    # -- Composed documents -------------------------------------------------

    def get_document(self, key: str) -> str | None:
        return self.memory.get(MemoryScope.DOCUMENTATION, key, str)

    # -- Timing -------------------------------------------------------------

    @contextmanager
    def timed_phase(self, name: str) -> Iterator[None]:
        """Record the wall time of the enclosed block under *name*."""
        start = time.monotonic()
        try:
            yield
        finally:
            self.phase_durations[name] = time.monotonic() - start

    @property
    def total_elapsed(self) -> float:
        return time.monotonic() - self.started_at

    # -- Reporting ----------------------------------------------------------

    def generate_system_status_report(self) -> str:
        """Markdown summary of cache, memory and timing figures."""
        report = self.cache.generate_report()
        lines = [
            "# System status",
            "",
            "## Cache performance",
            "",
            f"- Hit rate: {report.hit_rate * 100:.2f}%",
            f"- Operations: {report.total_operations}",
            f"- Hits: {report.cache_hits}",
            f"- Misses: {report.cache_misses}",
            f"- Writes: {report.cache_writes}",
            f"- Errors: {report.cache_errors}",
            f"- Inference time saved: {report.inference_time_saved:.2f}s",
            f"- Tokens saved: {report.input_tokens_saved} input, {report.output_tokens_saved} output",
            f"- Estimated cost saved: ${report.cost_saved:.4f}",
            "",
        ]

        usage = self.memory.usage_stats()
        if usage:
            lines += ["## Memory usage", ""]
            lines += [f"- {scope}: {size} bytes" for scope, size in usage.items()]
            lines.append("")

        lines += ["## Execution time", ""]
        for phase, seconds in self.phase_durations.items():
            lines.append(f"- {phase}: {seconds:.2f}s")
        lines.append(f"- Total: {self.total_elapsed:.2f}s")
        return "\n".join(lines) + "\n"
