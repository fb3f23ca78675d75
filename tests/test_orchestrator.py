"""Tests for tiered research orchestration."""

from __future__ import annotations

import pytest

from docsmith.agents.orchestrator import ResearchOrchestrator, ResearchTier, default_tiers
from docsmith.agents.research import AgentType, SystemContextResearcher
from docsmith.errors import AgentExecutionError, ProviderError
from docsmith.preprocess import run_preprocess

from conftest import FakeProvider, scripted_research


def _failing_workflow(system, user, model):
    if "core functional workflows" in system:
        raise RuntimeError("workflow model down")
    return scripted_research(system, user, model)


class TestDefaultTiers:
    def test_tier_order(self):
        tiers = default_tiers()
        assert [t.name for t in tiers] == ["macro", "meso", "micro"]
        assert [[a.agent_type for a in t.agents] for t in tiers] == [
            ["SystemContextResearcher"],
            ["DomainModulesDetector", "ArchitectureResearcher", "WorkflowResearcher"],
            ["KeyModulesInsight", "BoundaryAnalyzer"],
        ]


class TestResearchOrchestrator:
    @pytest.mark.asyncio
    async def test_full_run(self, make_ctx):
        provider = FakeProvider(extract_result=scripted_research, text="## Architecture\n\nLayered.")
        ctx = make_ctx(provider)
        run_preprocess(ctx)

        outcome = await ResearchOrchestrator().execute_research_pipeline(ctx)

        assert outcome.completed_agents == [
            "SystemContextResearcher",
            "DomainModulesDetector",
            "ArchitectureResearcher",
            "WorkflowResearcher",
            "KeyModulesInsight",
            "BoundaryAnalyzer",
        ]
        assert set(outcome.agent_durations) == set(outcome.completed_agents)
        assert ctx.get_research(AgentType.ARCHITECTURE.value) == "## Architecture\n\nLayered."
        assert ctx.has_research("KeyModulesInsight_orders")
        assert ctx.has_research("KeyModulesInsight_payments")
        assert {"research.macro", "research.meso", "research.micro"} <= set(ctx.phase_durations)
        assert len(provider.calls_for("prompt_multi_turn")) == 1

    @pytest.mark.asyncio
    async def test_later_tiers_see_earlier_results(self, make_ctx):
        provider = FakeProvider(extract_result=scripted_research)
        ctx = make_ctx(provider)
        run_preprocess(ctx)

        await ResearchOrchestrator().execute_research_pipeline(ctx)

        domain_call = next(c for c in provider.calls if "domain-driven design" in c["system"])
        assert "#### SystemContextResearcher:" in domain_call["user"]

    @pytest.mark.asyncio
    async def test_failing_agent_stops_the_run(self, make_ctx):
        ctx = make_ctx(FakeProvider(extract_result=_failing_workflow))
        run_preprocess(ctx)

        with pytest.raises(AgentExecutionError) as info:
            await ResearchOrchestrator().execute_research_pipeline(ctx)

        assert info.value.agent == "WorkflowResearcher"
        assert isinstance(info.value.cause, ProviderError)
        assert ctx.has_research(AgentType.ARCHITECTURE.value)
        assert not ctx.has_research(AgentType.KEY_MODULES.value)
        assert not ctx.has_research(AgentType.BOUNDARY.value)

    @pytest.mark.asyncio
    async def test_missing_source_names_the_agent(self, make_ctx):
        ctx = make_ctx(FakeProvider(extract_result=scripted_research))

        with pytest.raises(AgentExecutionError) as info:
            await ResearchOrchestrator().execute_research_pipeline(ctx)

        assert info.value.agent == "SystemContextResearcher"
        assert "not available" in str(info.value)

    @pytest.mark.asyncio
    async def test_custom_tiers(self, make_ctx):
        provider = FakeProvider(extract_result=scripted_research)
        ctx = make_ctx(provider)
        run_preprocess(ctx)
        orchestrator = ResearchOrchestrator([
            ResearchTier("macro", "system context", [SystemContextResearcher()]),
        ])

        outcome = await orchestrator.execute_research_pipeline(ctx)

        assert outcome.completed_agents == ["SystemContextResearcher"]
        assert len(provider.calls) == 1
