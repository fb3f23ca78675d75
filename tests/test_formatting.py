"""Tests for prompt formatting and compression of memory sections."""

from __future__ import annotations

import pytest

from docsmith.agents.compression import CompressionConfig, PromptCompressor
from docsmith.agents.formatting import (
    TRUNCATION_MARKER,
    DataFormatter,
    FormatterConfig,
    format_as_directory_tree,
    format_as_tree,
)
from docsmith.models import (
    CodeDossier,
    CodeInsight,
    CoreDependency,
    DependencyType,
    FileInfo,
    ProjectStructure,
    RelationshipAnalysis,
)

from conftest import FakeProvider


def _structure(*paths: str) -> ProjectStructure:
    return ProjectStructure(
        project_name="shop",
        root_path="/srv/shop",
        files=[FileInfo(path=p, name=p.rsplit("/", 1)[-1]) for p in paths],
        total_files=len(paths),
    )


def _insight(path: str, score: float) -> CodeInsight:
    return CodeInsight(
        code_dossier=CodeDossier(name=path, file_path=path, importance_score=score, source_summary="x = 1"),
        detailed_description=f"about {path}",
    )


class TestTrees:
    def test_file_tree(self):
        text = format_as_tree(_structure("a/b.py", "a/c.py", "README.md"))
        assert "Project name: shop" in text
        assert "├── README.md\n└── a/\n    ├── b.py\n    └── c.py" in text

    def test_directory_tree(self):
        text = format_as_directory_tree(_structure("src/app/x.py", "src/y.py", "z.py"))
        assert text.startswith("### Project directories")
        assert "└── src/\n    └── app/" in text
        assert "x.py" not in text

    def test_large_projects_show_directories_only(self):
        formatter = DataFormatter(FormatterConfig(only_directories_when_files_more_than=2))
        assert formatter.format_project_structure(_structure("a/x.py", "b.py")).startswith(
            "### Project structure"
        )
        assert formatter.format_project_structure(_structure("a/x.py", "b.py", "c.py")).startswith(
            "### Project directories"
        )


class TestDataFormatter:
    def test_insights_ranked_and_limited(self):
        formatter = DataFormatter(FormatterConfig(code_insights_limit=2))
        text = formatter.format_code_insights([
            _insight("low.py", 1.0), _insight("high.py", 9.0), _insight("mid.py", 5.0),
        ])
        assert text.index("`high.py`") < text.index("`mid.py`")
        assert "low.py" not in text
        assert "Source:" not in text

    def test_insights_with_source(self):
        formatter = DataFormatter(FormatterConfig(include_source_code=True))
        assert "```\nx = 1\n```" in formatter.format_code_insights([_insight("a.py", 1.0)])

    def test_readme_truncation(self):
        formatter = DataFormatter(FormatterConfig(readme_truncate_length=5))
        text = formatter.format_readme_content("abcdefghij")
        assert f"abcde{TRUNCATION_MARKER}" in text
        assert "fgh" not in text

    def test_dependencies_by_priority(self):
        deps = RelationshipAnalysis(core_dependencies=[
            CoreDependency(from_="a.py", to="b.py", dependency_type=DependencyType.MODULE),
            CoreDependency(from_="c.py", to="d.py", dependency_type=DependencyType.IMPORT),
        ])
        text = DataFormatter(FormatterConfig(dependency_limit=1)).format_dependency_analysis(deps)
        assert "c.py -> d.py (import)" in text
        assert "a.py" not in text

    def test_research_results(self):
        text = DataFormatter().format_research_results({"SystemContextResearcher": {"project_name": "shop"}})
        assert text.startswith("### Prior research results")
        assert '"project_name": "shop"' in text


class TestPromptCompressor:
    @pytest.mark.asyncio
    async def test_small_content_untouched(self, make_ctx):
        provider = FakeProvider()
        result = await PromptCompressor().compress_if_needed(make_ctx(provider), "short", "README")
        assert not result.was_compressed
        assert result.content == "short"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_large_content_is_condensed_once(self, make_ctx):
        provider = FakeProvider(text="condensed")
        ctx = make_ctx(provider)
        compressor = PromptCompressor(CompressionConfig(max_tokens=10))
        content = "word " * 500

        first = await compressor.compress_if_needed(ctx, content, "code insights")
        second = await compressor.compress_if_needed(ctx, content, "code insights")

        assert first.was_compressed
        assert first.content == second.content == "condensed"
        assert len(provider.calls_for("prompt_once")) == 1
        assert "code insights" in provider.calls[0]["user"]

    @pytest.mark.asyncio
    async def test_failure_keeps_original(self, make_ctx):
        ctx = make_ctx(FakeProvider(fail_models={"small", "big"}))
        content = "word " * 500
        result = await PromptCompressor(CompressionConfig(max_tokens=10)).compress_if_needed(
            ctx, content, "README",
        )
        assert not result.was_compressed
        assert result.content == content
