"""Compose tier: runs after research and fills the documentation scope."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Union

from rich.console import Console

from ...errors import AgentExecutionError
from ..base import StepAgent
from ..context import GeneratorContext
from .editors import ArchitectureEditor, BoundaryEditor, CodeIndexEditor, OverviewEditor, WorkflowEditor
from .key_modules import KeyModulesInsightEditor
from .types import DocTree

logger = logging.getLogger("docsmith.agents.compose")
console = Console()

Editor = Union[StepAgent, KeyModulesInsightEditor]


def default_editors() -> list[Editor]:
    return [
        OverviewEditor(),
        ArchitectureEditor(),
        WorkflowEditor(),
        KeyModulesInsightEditor(),
        BoundaryEditor(),
        CodeIndexEditor(),
    ]


@dataclass
class ComposeOutcome:
    doc_tree: DocTree = field(default_factory=DocTree.default)
    documents: dict[str, Any] = field(default_factory=dict)
    agent_durations: dict[str, float] = field(default_factory=dict)


class DocumentationComposer:
    """Run the editors in order; the first failure stops the tier.

    Usage::

        outcome = await DocumentationComposer().execute(ctx)
        DiskOutlet(output_dir).save(ctx, outcome.doc_tree)
    """

    def __init__(self, editors: list[Editor] | None = None) -> None:
        self.editors = editors if editors is not None else default_editors()

    async def execute(self, ctx: GeneratorContext) -> ComposeOutcome:
        outcome = ComposeOutcome()
        console.print(
            f"\n[bold cyan]Compose: {len(self.editors)} editors, "
            f"language {ctx.config.target_language.display_name}[/bold cyan]"
        )
        for editor in self.editors:
            outcome.documents[editor.agent_type] = await self._run_editor(ctx, editor, outcome)
        console.print(f"[green]✓ Compose complete: {len(outcome.documents)} editors[/green]")
        return outcome

    async def _run_editor(self, ctx: GeneratorContext, editor: Editor, outcome: ComposeOutcome) -> Any:
        console.print(f"  [dim]Running {editor.agent_type}...[/dim]")
        t0 = time.perf_counter()
        try:
            if isinstance(editor, KeyModulesInsightEditor):
                return await editor.execute(ctx, outcome.doc_tree)
            return await editor.execute(ctx)
        except Exception as exc:
            logger.error("Editor %s failed: %s", editor.agent_type, exc)
            console.print(f"  [red]✗ {editor.agent_type} failed: {exc}[/red]")
            raise AgentExecutionError(editor.agent_type, exc) from exc
        finally:
            outcome.agent_durations[editor.agent_type] = time.perf_counter() - t0
