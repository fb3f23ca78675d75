"""Write composed documents and research results to the output directory."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console

from .agents.compose.types import DocTree
from .agents.context import GeneratorContext, MemoryScope

logger = logging.getLogger("docsmith.outlet")
console = Console()

SUMMARY_FILE = "__summary__.md"


@dataclass
class OutletResult:
    output_dir: Path
    written: list[Path] = field(default_factory=list)
    summary_path: Path | None = None


def _slug(key: str) -> str:
    return re.sub(r"[^\w.-]+", "_", key).strip("_") or "report"


def _title(key: str) -> str:
    return re.sub(r"(?<=[a-z])(?=[A-Z])", " ", key).replace("_", " ").strip()


def render_markdown(value: Any, heading_level: int = 2) -> str:
    """Render a JSON-like research result as readable Markdown."""
    lines: list[str] = []
    _render_value(value, heading_level, lines, indent="")
    return "\n".join(lines).strip() + "\n"


def _render_value(value: Any, level: int, lines: list[str], indent: str) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            label = _title(str(key)).capitalize()
            if isinstance(item, (dict, list)) and item:
                if level <= 6 and not indent:
                    lines += ["", f"{'#' * level} {label}", ""]
                    _render_value(item, level + 1, lines, indent)
                else:
                    lines.append(f"{indent}- **{label}**:")
                    _render_value(item, level + 1, lines, indent + "  ")
            elif item not in (None, "", [], {}):
                lines.append(f"{indent}- **{label}**: {item}")
    elif isinstance(value, list):
        for n, item in enumerate(value, 1):
            if isinstance(item, dict):
                name = item.get("name") or item.get("module_name") or item.get("command") or f"Item {n}"
                if not indent and level <= 6:
                    lines += ["", f"{'#' * level} {name}", ""]
                    _render_value(item, level + 1, lines, indent)
                else:
                    lines.append(f"{indent}- {name}")
                    _render_value(item, level + 1, lines, indent + "  ")
            else:
                lines.append(f"{indent}- {item}")
    elif value not in (None, ""):
        lines.append(f"{indent}{value}")


class DiskOutlet:
    """Write composed documents plus every stored research result.

    Layout::

        <output>/
            1.Overview.md
            ...
            4.Deep-Exploration/<domain>.md
            ...
            SystemContextResearcher.md
            SystemContextResearcher.json
            ...
            __summary__.md
    """

    def __init__(self, output_dir: Path | str) -> None:
        self.output_dir = Path(output_dir)

    def save(self, ctx: GeneratorContext, doc_tree: DocTree | None = None) -> OutletResult:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        result = OutletResult(output_dir=self.output_dir)

        if doc_tree is not None:
            result.written += self._save_documents(ctx, doc_tree)

        for key in ctx.memory.list_keys(MemoryScope.STUDIES_RESEARCH):
            value = ctx.get_research(key)
            if value is None:
                continue
            stem = _slug(key)
            md_path = self.output_dir / f"{stem}.md"
            body = value if isinstance(value, str) else render_markdown(value)
            md_path.write_text(f"# {_title(key)}\n\n{body.rstrip()}\n", encoding="utf-8")
            result.written.append(md_path)

            if not isinstance(value, str):
                json_path = self.output_dir / f"{stem}.json"
                json_path.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")
                result.written.append(json_path)
            logger.info("Saved %s → %s", key, md_path)

        console.print(
            f"[green]✓[/] Wrote {len(result.written)} files to [bold]{self.output_dir}[/bold]"
        )
        return result

    def _save_documents(self, ctx: GeneratorContext, doc_tree: DocTree) -> list[Path]:
        written = []
        for key, relative_path in doc_tree.items():
            markdown = ctx.get_document(key)
            if markdown is None:
                logger.warning("No document content for %s", key)
                continue
            path = self.output_dir / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(markdown, encoding="utf-8")
            written.append(path)
            logger.info("Saved document %s → %s", key, path)
        return written

    @staticmethod
    def save_preprocess_snapshot(ctx: GeneratorContext, internal_dir: Path | str) -> list[Path]:
        """Dump the preprocess scope as JSON under *internal_dir*/preprocess."""
        target = Path(internal_dir) / "preprocess"
        target.mkdir(parents=True, exist_ok=True)
        paths = []
        for key in ctx.memory.list_keys(MemoryScope.PREPROCESS):
            path = target / f"{_slug(key)}.json"
            value = ctx.get_from_memory(MemoryScope.PREPROCESS, key)
            path.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")
            paths.append(path)
        return paths

    def save_summary(self, ctx: GeneratorContext) -> Path:
        """Write the system status report; also used after a failed run."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / SUMMARY_FILE
        path.write_text(ctx.generate_system_status_report(), encoding="utf-8")
        return path
