"""Research orchestrator: macro → meso → micro.

Each tier finishes before the next starts, so later agents can rely on
the results earlier ones stored in memory. Within the micro tier,
``KeyModulesInsight`` fans out over domains on its own; everything else
runs one agent at a time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console

from ..errors import AgentExecutionError
from .base import StepAgent
from .context import GeneratorContext
from .research import (
    ArchitectureResearcher,
    BoundaryAnalyzer,
    DomainModulesDetector,
    KeyModulesInsight,
    SystemContextResearcher,
    WorkflowResearcher,
)

logger = logging.getLogger("docsmith.agents.orchestrator")
console = Console()


@dataclass
class ResearchTier:
    name: str
    label: str
    agents: list[StepAgent]


def default_tiers() -> list[ResearchTier]:
    return [
        ResearchTier("macro", "system context", [SystemContextResearcher()]),
        ResearchTier(
            "meso",
            "domains, architecture and workflows",
            [DomainModulesDetector(), ArchitectureResearcher(), WorkflowResearcher()],
        ),
        ResearchTier("micro", "key modules and boundaries", [KeyModulesInsight(), BoundaryAnalyzer()]),
    ]


@dataclass
class ResearchOutcome:
    results: dict[str, Any] = field(default_factory=dict)
    agent_durations: dict[str, float] = field(default_factory=dict)

    @property
    def completed_agents(self) -> list[str]:
        return list(self.results)


class ResearchOrchestrator:
    """Run the research agents tier by tier.

    The first agent that raises stops the run with an
    ``AgentExecutionError`` naming it. Results already stored in memory
    stay there, so the caller can still write out what was produced.
    """

    def __init__(self, tiers: list[ResearchTier] | None = None) -> None:
        self.tiers = tiers if tiers is not None else default_tiers()

    async def execute_research_pipeline(self, ctx: GeneratorContext) -> ResearchOutcome:
        outcome = ResearchOutcome()
        total = sum(len(t.agents) for t in self.tiers)
        console.print(f"[bold cyan]Research: {total} agents in {len(self.tiers)} tiers[/bold cyan]")

        for tier in self.tiers:
            console.print(f"\n[bold]── {tier.name} tier: {tier.label} ──[/bold]")
            with ctx.timed_phase(f"research.{tier.name}"):
                for agent in tier.agents:
                    outcome.results[agent.agent_type] = await self._run_agent(ctx, agent, outcome)

        console.print(f"\n[green]✓ Research complete: {len(outcome.results)} agents[/green]")
        return outcome

    async def _run_agent(self, ctx: GeneratorContext, agent: StepAgent, outcome: ResearchOutcome) -> Any:
        console.print(f"  [dim]Running {agent.agent_type}...[/dim]")
        t0 = time.perf_counter()
        try:
            return await agent.execute(ctx)
        except Exception as exc:
            logger.error("Agent %s failed: %s", agent.agent_type, exc)
            console.print(f"  [red]✗ {agent.agent_type} failed: {exc}[/red]")
            raise AgentExecutionError(agent.agent_type, exc) from exc
        finally:
            outcome.agent_durations[agent.agent_type] = time.perf_counter() - t0
