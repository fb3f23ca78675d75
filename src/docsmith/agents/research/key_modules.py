"""Micro tier: one deep-dive per detected domain, run concurrently."""

from __future__ import annotations

import asyncio
import logging
import re

from rich.console import Console

from ..base import AgentDataConfig, PriorResult, PromptTemplate, StepAgent
from ..context import GeneratorContext, MemoryScope, ScopedKeys
from ..executor import AgentExecuteParams, extract
from ...errors import DocsmithError, OrchestratorDomainFailure
from ...llm.types import CallMode
from ...models import CodeInsight
from .types import AgentType, DomainModule, DomainModulesReport, KeyModuleReport, SubModule

logger = logging.getLogger("docsmith.agents.research")
console = Console()

MAX_INSIGHTS_PER_DOMAIN = 50


class KeyModulesInsight(StepAgent):
    """Analyze every domain from ``DomainModulesDetector`` in parallel.

    At most ``llm.max_parallels`` domains are in flight at once. A failed
    domain is logged and skipped; the agent fails only when every domain
    fails. Each report is stored as ``KeyModulesInsight_<domain>`` and the
    list of all reports under ``KeyModulesInsight``.
    """

    agent_type = AgentType.KEY_MODULES.value
    output_model = list[KeyModuleReport]

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
            ],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a software development expert. Investigate the technical "
                "details of the core modules from the information provided."
            ),
            opening_instruction="Analyze the core modules based on this project material:",
            closing_instruction="",
            call_mode=CallMode.EXTRACT,
        )

    async def execute(self, ctx: GeneratorContext) -> list[KeyModuleReport]:
        self.check_required_sources(ctx)
        domains = self.domain_modules(ctx)
        if not domains:
            raise DocsmithError("No domain modules available for analysis")

        limit = max(ctx.config.llm.max_parallels, 1)
        console.print(
            f"   Analyzing {len(domains)} domains ({', '.join(d.name for d in domains)}), "
            f"max {limit} in parallel"
        )
        semaphore = asyncio.Semaphore(limit)

        async def analyze_with_limit(domain: DomainModule) -> KeyModuleReport:
            async with semaphore:
                return await self.analyze_domain(ctx, domain)

        results = await asyncio.gather(
            *[analyze_with_limit(d) for d in domains], return_exceptions=True,
        )

        reports: list[KeyModuleReport] = []
        for domain, result in zip(domains, results):
            if isinstance(result, Exception):
                failure = OrchestratorDomainFailure(domain.name, result)
                logger.warning("%s", failure)
                console.print(f"   [yellow]⚠ {failure}[/]")
                continue
            if isinstance(result, BaseException):
                raise result
            ctx.store_research(f"{self.agent_type}_{domain.name}", result)
            reports.append(result)
            console.print(f"   [green]✓[/] domain '{domain.name}' analyzed")

        if not reports:
            raise DocsmithError(f"All {len(domains)} domain analyses failed")

        ctx.store_to_memory(self.memory_scope, self.agent_type, reports)
        return reports

    # ------------------------------------------------------------------
    # Single domain
    # ------------------------------------------------------------------
    def domain_modules(self, ctx: GeneratorContext) -> list[DomainModule]:
        report = ctx.get_research(AgentType.DOMAIN_MODULES.value, DomainModulesReport)
        if report is None:
            raise DocsmithError("DomainModulesDetector result is not usable")
        return report.domain_modules

    def filter_insights(self, ctx: GeneratorContext, domain: DomainModule) -> list[CodeInsight]:
        insights = ctx.get_from_memory(
            MemoryScope.PREPROCESS, ScopedKeys.CODE_INSIGHTS, list[CodeInsight],
        ) or []
        paths = {p.replace("\\", "/") for p in domain.all_code_paths()}
        if not paths:
            logger.info("Domain '%s' has no code paths", domain.name)
            return []
        selected = []
        for insight in insights:
            file_path = insight.code_dossier.file_path.replace("\\", "/")
            if any(p in file_path or file_path in p for p in paths):
                selected.append(insight)
                if len(selected) >= MAX_INSIGHTS_PER_DOMAIN:
                    break
        return selected

    async def analyze_domain(self, ctx: GeneratorContext, domain: DomainModule) -> KeyModuleReport:
        insights = self.filter_insights(ctx, domain)
        system = (
            "Analyze the information the user provides thoroughly and rigorously "
            "and answer in the requested format.\n\n"
            + ctx.config.target_language.prompt_instruction()
        )
        user = (
            "## Domain analysis task\n"
            f"Analyze the technical details of the core modules of the '{domain.name}' domain.\n\n"
            "### Domain\n"
            f"- Name: {domain.name}\n"
            f"- Type: {domain.domain_type}\n"
            f"- Importance: {domain.importance:.1f}/10\n"
            f"- Complexity: {domain.complexity:.1f}/10\n"
            f"- Description: {domain.description}\n\n"
            "### Sub-modules\n"
            f"{_format_sub_modules(domain.sub_modules)}\n\n"
            "### Related code insights\n"
            f"{_format_insights(insights)}\n"
        )
        params = AgentExecuteParams(
            prompt_sys=system,
            prompt_user=user,
            cache_scope=f"{self.memory_scope}/{self.agent_type}/{domain_slug(domain.name)}",
            log_tag=f"{domain.name} domain",
        )
        report = await extract(ctx, params, KeyModuleReport)
        report.domain_name = domain.name
        if not report.module_name:
            report.module_name = f"{domain.name} core module"
        return report


def domain_slug(name: str) -> str:
    # Model-supplied; must stay a single path segment.
    return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_")[:50] or "domain"

def _format_sub_modules(subs: list[SubModule]) -> str:
    if not subs:
        return "No sub-module information."
    return "\n\n".join(
        f"{i}. **{s.name}**\n"
        f"   - Description: {s.description}\n"
        f"   - Importance: {s.importance:.1f}/10\n"
        f"   - Key functions: {', '.join(s.key_functions)}\n"
        f"   - Code files: {', '.join(s.code_paths)}"
        for i, s in enumerate(subs, 1)
    )


def _format_insights(insights: list[CodeInsight]) -> str:
    if not insights:
        return "No related code insights."
    return "\n".join(
        f"{i}. `{c.code_dossier.file_path}`, purpose: {c.code_dossier.code_purpose.display_name}\n"
        f"   Description: {c.detailed_description}\n"
        f"   Source:\n```\n{c.code_dossier.source_summary}\n```\n---"
        for i, c in enumerate(insights, 1)
    )
