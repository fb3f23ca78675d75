"""Render memory contents as prompt-ready Markdown sections."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..models import CodeInsight, ProjectStructure, RelationshipAnalysis
from .compression import CompressionConfig, PromptCompressor

if TYPE_CHECKING:
    from .context import GeneratorContext

TRUNCATION_MARKER = "...(truncated)"


@dataclass
class FormatterConfig:
    # Show only directories when the project has more files than this.
    only_directories_when_files_more_than: int | None = None
    code_insights_limit: int = 50
    include_source_code: bool = False
    dependency_limit: int = 50
    readme_truncate_length: int | None = 16384
    enable_compression: bool = True
    compression: CompressionConfig = field(default_factory=CompressionConfig)


# ---------------------------------------------------------------------------
# Tree rendering
# ---------------------------------------------------------------------------

def _insert(tree: dict[str, Any], parts: list[str]) -> None:
    node = tree
    for part in parts:
        node = node.setdefault(part, {})


def _render(tree: dict[str, Any], prefix: str, lines: list[str], dirs_only: bool) -> None:
    names = sorted(tree)
    for i, name in enumerate(names):
        last = i == len(names) - 1
        children = tree[name]
        is_dir = bool(children) or dirs_only
        lines.append(f"{prefix}{'└── ' if last else '├── '}{name}{'/' if is_dir else ''}")
        if children:
            _render(children, prefix + ("    " if last else "│   "), lines, dirs_only)


def _normalize(path: str) -> str:
    path = path.replace("\\", "/")
    return path[2:] if path.startswith("./") else path


def format_as_tree(structure: ProjectStructure) -> str:
    tree: dict[str, Any] = {}
    for f in structure.files:
        _insert(tree, [p for p in _normalize(f.path).split("/") if p])
    lines: list[str] = []
    _render(tree, "", lines, dirs_only=False)
    return (
        "### Project structure\n"
        f"Project name: {structure.project_name}\n"
        f"Root: {structure.root_path}\n\n"
        "```\n" + "\n".join(lines) + "\n```\n"
    )


def format_as_directory_tree(structure: ProjectStructure) -> str:
    tree: dict[str, Any] = {}
    for f in structure.files:
        parts = [p for p in _normalize(f.path).split("/") if p][:-1]
        if parts:
            _insert(tree, parts)
    lines: list[str] = []
    _render(tree, "", lines, dirs_only=True)
    return (
        "### Project directories\n"
        f"Project name: {structure.project_name}\n"
        f"Root: {structure.root_path}\n\n"
        "```\n" + "\n".join(lines) + "\n```\n"
    )


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

class DataFormatter:
    """One renderer per kind of source, configured per agent."""

    def __init__(self, config: FormatterConfig | None = None) -> None:
        self.config = config or FormatterConfig()
        self.compressor = (
            PromptCompressor(self.config.compression) if self.config.enable_compression else None
        )

    def format_project_structure(self, structure: ProjectStructure) -> str:
        limit = self.config.only_directories_when_files_more_than
        if limit is not None and structure.total_files > limit:
            return format_as_directory_tree(structure)
        return format_as_tree(structure)

    def format_code_insights(self, insights: list[CodeInsight]) -> str:
        ranked = sorted(insights, key=lambda i: i.code_dossier.importance_score, reverse=True)
        lines = ["### Code insights"]
        for n, insight in enumerate(ranked[: self.config.code_insights_limit], 1):
            d = insight.code_dossier
            lines.append(
                f"{n}. `{d.file_path}`, purpose `{d.code_purpose.display_name}`, "
                f"importance {d.importance_score:.2f}"
            )
            if insight.detailed_description:
                lines.append(f"   Description: {insight.detailed_description}")
            if self.config.include_source_code and d.source_summary:
                lines.append(f"   Source:\n```\n{d.source_summary}\n```")
        return "\n".join(lines) + "\n\n"

    def format_readme_content(self, readme: str) -> str:
        limit = self.config.readme_truncate_length
        if limit is not None and len(readme) > limit:
            readme = readme[:limit] + TRUNCATION_MARKER
        return (
            "### Existing README (written by hand, may be inaccurate; for reference only)\n"
            f"{readme}\n\n"
        )

    def format_dependency_analysis(self, deps: RelationshipAnalysis) -> str:
        ranked = sorted(
            deps.core_dependencies, key=lambda d: d.dependency_type.priority, reverse=True,
        )
        lines = ["### Dependency analysis"]
        for dep in ranked[: self.config.dependency_limit]:
            lines.append(f"{dep.from_} -> {dep.to} ({dep.dependency_type.value})")
        return "\n".join(lines) + "\n\n"

    def format_research_results(self, results: dict[str, Any]) -> str:
        parts = ["### Prior research results"]
        for name, value in results.items():
            parts.append(f"#### {name}:\n{json.dumps(value, indent=2, ensure_ascii=False)}\n")
        return "\n".join(parts) + "\n"

    async def compress_if_needed(
        self, ctx: "GeneratorContext", content: str, content_type: str,
    ) -> str:
        if self.compressor is None:
            return content
        result = await self.compressor.compress_if_needed(ctx, content, content_type)
        return result.content
