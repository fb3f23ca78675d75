"""Deep-exploration documents, one per analyzed domain."""

from __future__ import annotations

import asyncio
import logging

from rich.console import Console

from ..base import AgentDataConfig, PriorResult, PromptTemplate
from ..context import GeneratorContext
from ..research.key_modules import domain_slug
from ..research.types import AgentType, KeyModuleReport
from ...llm.types import CallMode
from .editors import CODE_LOCATION_RULES, DocEditor
from .types import DEEP_EXPLORATION_DIR, DocTree

logger = logging.getLogger("docsmith.agents.compose")
console = Console()


class KeyModuleDocEditor(DocEditor):
    """Write the document for a single domain's key-module report."""

    def __init__(self, report: KeyModuleReport) -> None:
        self.report = report
        self.agent_type = f"{AgentType.KEY_MODULES.value}_{report.domain_name}"

    @property
    def cache_scope(self) -> str:
        return f"{self.memory_scope}/{AgentType.KEY_MODULES.value}/{domain_slug(self.report.domain_name)}"

    @property
    def relative_path(self) -> str:
        return f"{DEEP_EXPLORATION_DIR}/{domain_slug(self.report.domain_name)}.md"

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
                PriorResult(AgentType.ARCHITECTURE.value),
                PriorResult(AgentType.WORKFLOW.value),
                PriorResult(self.agent_type),
            ],
        )

    def prompt_template(self) -> PromptTemplate:
        name = self.report.domain_name
        return PromptTemplate(
            system_prompt=(
                "You are a software expert writing the technical documentation of "
                "one module of an existing project from the research material and "
                "requirements the user provides.\n\n"
                f"{CODE_LOCATION_RULES}"
            ),
            opening_instruction=(
                f"The topic to document is the '{name}' domain.\n"
                "## Quality requirements\n"
                f"- Cover every important aspect of '{name}' found in the material\n"
                "- Keep technical details accurate to the research data\n"
                "- Explain the implementation, not only the interfaces"
            ),
            closing_instruction="",
            call_mode=CallMode.PROMPT_WITH_TOOLS,
        )


class KeyModulesInsightEditor:
    """Fan the per-domain editors out, at most ``llm.max_parallels`` at once.

    Each finished document is registered in *doc_tree* under
    ``4.Deep-Exploration/<domain>.md``. Nothing happens when the research
    run produced no key-module reports.
    """

    agent_type = "KeyModulesInsightEditor"

    async def execute(self, ctx: GeneratorContext, doc_tree: DocTree) -> list[str]:
        reports = ctx.get_research(AgentType.KEY_MODULES.value, list[KeyModuleReport])
        if not reports:
            logger.info("No key-module reports, skipping deep-exploration documents")
            return []

        limit = max(ctx.config.llm.max_parallels, 1)
        console.print(f"   Writing {len(reports)} domain documents, max {limit} in parallel")
        semaphore = asyncio.Semaphore(limit)
        editors = [KeyModuleDocEditor(r) for r in reports]

        async def run_with_limit(editor: KeyModuleDocEditor) -> str:
            async with semaphore:
                return await editor.execute(ctx)

        results = await asyncio.gather(*[run_with_limit(e) for e in editors], return_exceptions=True)

        written: list[str] = []
        for editor, result in zip(editors, results):
            if isinstance(result, BaseException):
                raise result
            doc_tree.insert(editor.agent_type, editor.relative_path)
            written.append(result)
        return written
