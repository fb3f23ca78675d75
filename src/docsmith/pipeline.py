"""End-to-end run: preprocess → research → compose → outlet.

Usage::

    pipeline = Pipeline(config)
    result = asyncio.run(pipeline.run())

``Pipeline.ctx`` stays available after a failed run so the caller can
still report cache and timing figures.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from rich.console import Console

from .agents.compose import ComposeOutcome, DocumentationComposer
from .agents.context import GeneratorContext
from .agents.orchestrator import ResearchOrchestrator, ResearchOutcome
from .cache import CacheManager
from .config import Config
from .llm.invoker import ModelInvoker
from .llm.providers import AsyncLLMProvider, provider_from_config
from .llm.tools import preset_tools
from .outlet import DiskOutlet, OutletResult
from .preprocess import run_preprocess

logger = logging.getLogger("docsmith.pipeline")
console = Console()


@dataclass
class PipelineResult:
    project_name: str = ""
    outcome: ResearchOutcome | None = None
    compose: ComposeOutcome | None = None
    outlet: OutletResult | None = None
    phase_durations: dict[str, float] = field(default_factory=dict)
    elapsed_seconds: float = 0.0


def build_context(config: Config, *, provider: AsyncLLMProvider | None = None) -> GeneratorContext:
    """Wire provider, tools, invoker and cache for one run."""
    provider = provider or provider_from_config(config.llm)
    invoker = ModelInvoker(provider, config.llm, tools=preset_tools(config))
    return GeneratorContext(
        config=config,
        invoker=invoker,
        cache=CacheManager(config.cache),
    )


class Pipeline:
    """Run the documentation pipeline for one project."""

    def __init__(
        self,
        config: Config,
        *,
        provider: AsyncLLMProvider | None = None,
        orchestrator: ResearchOrchestrator | None = None,
        composer: DocumentationComposer | None = None,
    ) -> None:
        self.config = config
        self.ctx = build_context(config, provider=provider)
        self.orchestrator = orchestrator or ResearchOrchestrator()
        self.composer = composer or DocumentationComposer()
        self.outlet = DiskOutlet(config.output_path)

    async def run(self) -> PipelineResult:
        t0 = time.perf_counter()
        result = PipelineResult(project_name=self.config.get_project_name())
        logger.info("Starting run for %s (%s)", result.project_name, self.config.project_path)

        try:
            with self.ctx.timed_phase("preprocess"):
                run_preprocess(self.ctx)
            self.outlet.save_preprocess_snapshot(self.ctx, self.config.internal_path)

            if self.config.skip_research:
                console.print("[dim]Research skipped[/dim]")
            else:
                with self.ctx.timed_phase("research"):
                    result.outcome = await self.orchestrator.execute_research_pipeline(self.ctx)
                with self.ctx.timed_phase("compose"):
                    result.compose = await self.composer.execute(self.ctx)

            doc_tree = result.compose.doc_tree if result.compose else None
            with self.ctx.timed_phase("output"):
                result.outlet = self.outlet.save(self.ctx, doc_tree)
        finally:
            # Written on failure too, so the run's cache figures survive.
            summary = self.outlet.save_summary(self.ctx)
            if result.outlet is not None:
                result.outlet.summary_path = summary
            result.phase_durations = dict(self.ctx.phase_durations)
            result.elapsed_seconds = time.perf_counter() - t0

        return result


async def launch(config: Config, *, provider: AsyncLLMProvider | None = None) -> PipelineResult:
    """Convenience wrapper: build a ``Pipeline`` and run it."""
    return await Pipeline(config, provider=provider).run()
