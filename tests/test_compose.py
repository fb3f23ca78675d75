"""Tests for the documentation editors and the compose tier."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone

import pytest

from docsmith.agents.compose import (
    DEEP_EXPLORATION_DIR,
    DocTree,
    DocType,
    DocumentationComposer,
    KeyModulesInsightEditor,
    OverviewEditor,
)
from docsmith.agents.context import MemoryScope
from docsmith.agents.orchestrator import ResearchOrchestrator
from docsmith.agents.research import AgentType
from docsmith.agents.research.types import (
    DomainModule,
    DomainModulesReport,
    KeyModuleReport,
    SystemContextReport,
)
from docsmith.errors import AgentExecutionError, MissingRequiredSource
from docsmith.preprocess import run_preprocess

from conftest import FakeProvider, scripted_research

STAMPED = "Generated __CURRENT_UTC_TIME__ (epoch __CURRENT_TIMESTAMP__)"


def _store_overview_sources(ctx) -> None:
    ctx.store_research(AgentType.SYSTEM_CONTEXT.value, SystemContextReport(project_name="shop"))
    ctx.store_research(
        AgentType.DOMAIN_MODULES.value,
        DomainModulesReport(domain_modules=[DomainModule(name="orders", code_paths=["app"])]),
    )


async def _researched_ctx(make_ctx, provider):
    ctx = make_ctx(provider)
    run_preprocess(ctx)
    await ResearchOrchestrator().execute_research_pipeline(ctx)
    return ctx


class TestDocTree:
    def test_default_layout(self):
        tree = DocTree.default()
        assert tree.structure[DocType.OVERVIEW.value] == "1.Overview.md"
        assert tree.structure[DocType.CODE_INDEX.value] == "6.Code-Index.md"
        assert len(tree.structure) == len(DocType)

    def test_insert(self):
        tree = DocTree()
        tree.insert("KeyModulesInsight_orders", f"{DEEP_EXPLORATION_DIR}/orders.md")
        assert dict(tree.items()) == {"KeyModulesInsight_orders": "4.Deep-Exploration/orders.md"}


class TestPromptModeEditor:
    @pytest.mark.asyncio
    async def test_prompt_result_is_cached(self, make_ctx):
        provider = FakeProvider(text="# System Overview")
        ctx = make_ctx(provider)
        _store_overview_sources(ctx)

        first = await OverviewEditor().execute(ctx)
        second = await OverviewEditor().execute(ctx)

        assert first == second == "# System Overview"
        assert len(provider.calls_for("prompt_once")) == 1
        assert provider.calls_for("extract") == []
        assert ctx.cache.generate_report().cache_hits == 1

    @pytest.mark.asyncio
    async def test_time_placeholders_are_filled(self, make_ctx, config):
        provider = FakeProvider(text=STAMPED)
        ctx = make_ctx(provider)
        _store_overview_sources(ctx)

        result = await OverviewEditor().execute(ctx)

        assert "__CURRENT_" not in result
        year = datetime.now(timezone.utc).year
        assert re.fullmatch(rf"Generated {year}-\d\d-\d\d \d\d:\d\d:\d\d \(UTC\) \(epoch \d+\)", result)
        assert ctx.get_document(DocType.OVERVIEW.value) == result

        user = provider.calls[0]["user"]
        assert "## Current time\nGenerated at: __CURRENT_UTC_TIME__" in user
        assert user.index("## Current time") < user.index("## Reference material")

        # The cache keeps the raw text so every hit is stamped afresh.
        entries = list((config.cache.cache_dir / "documentation" / "Overview").glob("*.json"))
        assert len(entries) == 1
        assert json.loads(entries[0].read_text(encoding="utf-8"))["data"] == STAMPED

    @pytest.mark.asyncio
    async def test_cache_hit_is_stamped_too(self, make_ctx):
        provider = FakeProvider(text=STAMPED)
        ctx = make_ctx(provider)
        _store_overview_sources(ctx)

        await OverviewEditor().execute(ctx)
        again = await OverviewEditor().execute(ctx)

        assert "__CURRENT_" not in again
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_prompt_carries_research_results(self, make_ctx):
        provider = FakeProvider()
        ctx = make_ctx(provider)
        _store_overview_sources(ctx)

        await OverviewEditor().execute(ctx)

        user = provider.calls[0]["user"]
        assert "### Prior research results" in user
        assert '"project_name": "shop"' in user

    @pytest.mark.asyncio
    async def test_missing_research_stops_before_model_call(self, make_ctx):
        provider = FakeProvider()
        ctx = make_ctx(provider)

        with pytest.raises(MissingRequiredSource, match="SystemContextResearcher"):
            await OverviewEditor().execute(ctx)

        assert provider.calls == []
        assert not ctx.memory.list_keys(MemoryScope.DOCUMENTATION)


class TestKeyModulesInsightEditor:
    @pytest.mark.asyncio
    async def test_one_document_per_domain(self, make_ctx):
        provider = FakeProvider(extract_result=scripted_research, text="# Domain")
        ctx = await _researched_ctx(make_ctx, provider)
        before = len(provider.calls_for("prompt_multi_turn"))
        tree = DocTree()

        docs = await KeyModulesInsightEditor().execute(ctx, tree)

        assert docs == ["# Domain", "# Domain"]
        assert len(provider.calls_for("prompt_multi_turn")) == before + 2
        assert tree.structure == {
            "KeyModulesInsight_orders": "4.Deep-Exploration/orders.md",
            "KeyModulesInsight_payments": "4.Deep-Exploration/payments.md",
        }
        assert ctx.get_document("KeyModulesInsight_orders") == "# Domain"

    @pytest.mark.asyncio
    async def test_no_reports_is_a_no_op(self, make_ctx):
        provider = FakeProvider()
        tree = DocTree()
        assert await KeyModulesInsightEditor().execute(make_ctx(provider), tree) == []
        assert tree.structure == {}
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_domain_name_is_slugged_in_paths(self, make_ctx, config):
        provider = FakeProvider(text="# Domain")
        ctx = make_ctx(provider)
        _store_overview_sources(ctx)
        ctx.store_research(AgentType.ARCHITECTURE.value, "Layered.")
        ctx.store_research(AgentType.WORKFLOW.value, {"main_workflow": {"name": "Place order"}})
        report = KeyModuleReport(domain_name="../../escaped", module_name="x")
        ctx.store_research(AgentType.KEY_MODULES.value, [report])
        ctx.store_research("KeyModulesInsight_../../escaped", report)
        tree = DocTree()

        await KeyModulesInsightEditor().execute(ctx, tree)

        assert tree.structure == {"KeyModulesInsight_../../escaped": "4.Deep-Exploration/escaped.md"}
        cache_root = config.cache.cache_dir.resolve()
        assert all(
            p.resolve().is_relative_to(cache_root)
            for p in config.cache.cache_dir.parent.rglob("*.json")
            if "escaped" in str(p)
        )


class TestDocumentationComposer:
    @pytest.mark.asyncio
    async def test_full_compose(self, make_ctx):
        provider = FakeProvider(extract_result=scripted_research, text="# Doc")
        ctx = await _researched_ctx(make_ctx, provider)
        prompts_before = len(provider.calls_for("prompt_once"))

        outcome = await DocumentationComposer().execute(ctx)

        assert set(outcome.documents) == {
            "Overview", "Architecture", "Workflow", "KeyModulesInsightEditor", "Boundary", "CodeIndex",
        }
        assert set(ctx.memory.list_keys(MemoryScope.DOCUMENTATION)) == {
            "Overview", "Architecture", "Workflow", "Boundary", "CodeIndex",
            "KeyModulesInsight_orders", "KeyModulesInsight_payments",
        }
        # overview, architecture, boundary and code index are single prompts
        assert len(provider.calls_for("prompt_once")) == prompts_before + 4
        assert "4.Deep-Exploration/orders.md" in outcome.doc_tree.structure.values()
        assert set(outcome.agent_durations) == set(outcome.documents)

    @pytest.mark.asyncio
    async def test_failing_editor_is_named(self, make_ctx):
        provider = FakeProvider(extract_result=scripted_research, text="# Doc")
        ctx = await _researched_ctx(make_ctx, provider)
        provider.fail_prompt_once = True

        with pytest.raises(AgentExecutionError) as info:
            await DocumentationComposer([OverviewEditor()]).execute(ctx)

        assert info.value.agent == "Overview"
