"""End-to-end pipeline and output tests."""

from __future__ import annotations

import json

import pytest

from docsmith.errors import AgentExecutionError
from docsmith.outlet import SUMMARY_FILE, render_markdown
from docsmith.pipeline import Pipeline

from conftest import FakeProvider, scripted_research


class TestRenderMarkdown:
    def test_nested_values(self):
        text = render_markdown({
            "project_name": "shop",
            "target_users": [{"name": "Developers", "needs": ["docs"]}],
            "empty": "",
        })

        assert "- **Project name**: shop" in text
        assert "## Target users" in text
        assert "### Developers" in text
        assert "- docs" in text
        assert "Empty" not in text

    def test_unnamed_list_items(self):
        text = render_markdown([{"description": "first"}])
        assert "## Item 1" in text
        assert "- **Description**: first" in text


class TestPipeline:
    @pytest.mark.asyncio
    async def test_full_run_writes_reports(self, config):
        provider = FakeProvider(extract_result=scripted_research, text="## Architecture\n\nLayered.")
        result = await Pipeline(config, provider=provider).run()

        out = config.output_path
        assert result.project_name == "shop"
        assert len(result.outcome.completed_agents) == 6
        assert (out / "SystemContextResearcher.md").read_text(encoding="utf-8").startswith(
            "# System Context Researcher"
        )
        stored = json.loads((out / "SystemContextResearcher.json").read_text(encoding="utf-8"))
        assert stored["project_name"] == "shop"
        assert (out / "ArchitectureResearcher.md").exists()
        assert not (out / "ArchitectureResearcher.json").exists()
        assert (out / "KeyModulesInsight_orders.md").exists()

        assert result.outlet.summary_path == out / SUMMARY_FILE
        assert "# System status" in (out / SUMMARY_FILE).read_text(encoding="utf-8")
        assert (config.internal_path / "preprocess" / "project_structure.json").exists()
        assert {"preprocess", "research", "compose", "output"} <= set(result.phase_durations)

    @pytest.mark.asyncio
    async def test_full_run_writes_composed_documents(self, config):
        provider = FakeProvider(extract_result=scripted_research, text="# Written __CURRENT_UTC_TIME__")
        result = await Pipeline(config, provider=provider).run()

        out = config.output_path
        for name in ("1.Overview.md", "2.Architecture.md", "3.Workflow.md",
                     "5.Boundary-Interfaces.md", "6.Code-Index.md"):
            text = (out / name).read_text(encoding="utf-8")
            assert text.startswith("# Written ")
            assert "__CURRENT_UTC_TIME__" not in text
        assert (out / "4.Deep-Exploration" / "orders.md").exists()
        assert (out / "4.Deep-Exploration" / "payments.md").exists()
        assert out / "1.Overview.md" in result.outlet.written
        assert len(result.compose.doc_tree.structure) == 7

    @pytest.mark.asyncio
    async def test_second_run_hits_the_cache(self, config):
        provider = FakeProvider(extract_result=scripted_research)
        await Pipeline(config, provider=provider).run()
        first_calls = len(provider.calls)

        pipeline = Pipeline(config, provider=provider)
        await pipeline.run()

        assert len(provider.calls) == first_calls
        assert pipeline.ctx.cache.generate_report().cache_misses == 0

    @pytest.mark.asyncio
    async def test_skip_research(self, config):
        config.skip_research = True
        provider = FakeProvider()
        result = await Pipeline(config, provider=provider).run()

        assert result.outcome is None
        assert result.outlet.written == []
        assert provider.calls == []
        assert (config.output_path / SUMMARY_FILE).exists()
        snapshot = config.internal_path / "preprocess"
        assert sorted(p.name for p in snapshot.iterdir()) == [
            "code_insights.json", "original_document.json",
            "project_structure.json", "relationships.json",
        ]

    @pytest.mark.asyncio
    async def test_failed_run_still_writes_summary(self, config):
        def answer(system, user, model):
            if "system boundary analyst" in system:
                raise RuntimeError("boom")
            return scripted_research(system, user, model)

        pipeline = Pipeline(config, provider=FakeProvider(extract_result=answer))
        with pytest.raises(AgentExecutionError) as info:
            await pipeline.run()

        assert info.value.agent == "BoundaryAnalyzer"
        assert (config.output_path / SUMMARY_FILE).exists()
        assert not (config.output_path / "SystemContextResearcher.md").exists()
        assert pipeline.ctx.has_research("SystemContextResearcher")
