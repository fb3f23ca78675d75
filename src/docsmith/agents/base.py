"""The step agent contract.

A ``StepAgent`` declares which memory entries it reads
(``AgentDataConfig``), how it phrases its request (``PromptTemplate``)
and what it returns (``output_model``). ``execute`` does the rest:

1. check every required source is present and well-formed, else ``MissingRequiredSource``
2. render required and optional sources (missing optional ones are skipped)
3. build system and user prompts, adding the target-language directive
4. call the model through the cache-checked executor
5. store the result under ``(memory_scope, agent_type)`` and post-process
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Union

from rich.console import Console

from ..errors import MissingRequiredSource
from ..llm.types import CallMode
from ..models import CodeInsight, ProjectStructure, RelationshipAnalysis
from .context import GeneratorContext, MemoryScope, ScopedKeys
from .executor import AgentExecuteParams, dispatch
from .formatting import DataFormatter, FormatterConfig

logger = logging.getLogger("docsmith.agents")
console = Console()


# ---------------------------------------------------------------------------
# Data sources
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MemoryRef:
    """An entry written by preprocessing."""
    scope: str
    key: str

    def __str__(self) -> str:
        return f"{self.scope}:{self.key}"


@dataclass(frozen=True)
class PriorResult:
    """The stored output of an earlier research agent."""
    agent_name: str

    def __str__(self) -> str:
        return f"research result {self.agent_name}"


DataSourceRef = Union[MemoryRef, PriorResult]


class DataSource:
    PROJECT_STRUCTURE = MemoryRef(MemoryScope.PREPROCESS, ScopedKeys.PROJECT_STRUCTURE)
    CODE_INSIGHTS = MemoryRef(MemoryScope.PREPROCESS, ScopedKeys.CODE_INSIGHTS)
    DEPENDENCY_ANALYSIS = MemoryRef(MemoryScope.PREPROCESS, ScopedKeys.RELATIONSHIPS)
    README_CONTENT = MemoryRef(MemoryScope.PREPROCESS, ScopedKeys.ORIGINAL_DOCUMENT)


@dataclass
class AgentDataConfig:
    required: list[DataSourceRef] = field(default_factory=list)
    optional: list[DataSourceRef] = field(default_factory=list)


@dataclass
class PromptTemplate:
    system_prompt: str
    opening_instruction: str
    closing_instruction: str
    call_mode: CallMode = CallMode.EXTRACT
    formatter: FormatterConfig = field(default_factory=FormatterConfig)


def resolve_source(ctx: GeneratorContext, ref: DataSourceRef) -> Any:
    """Read *ref* the way prompts consume it; ``None`` when absent or malformed."""
    if isinstance(ref, MemoryRef):
        renderer = _MEMORY_RENDERERS.get(ref.key)
        model = renderer[0] if renderer else None
        return ctx.get_from_memory(ref.scope, ref.key, model)
    if isinstance(ref, PriorResult):
        return ctx.get_research(ref.agent_name)
    raise TypeError(f"Unknown data source: {ref!r}")


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------

class PromptBuilder:
    """Turn a template plus resolved sources into the user prompt."""

    def __init__(self, template: PromptTemplate) -> None:
        self.template = template
        self.formatter = DataFormatter(template.formatter)

    async def build_user_prompt(
        self,
        ctx: GeneratorContext,
        sources: list[DataSourceRef],
        custom_content: str | None = None,
        include_timestamp: bool = False,
    ) -> str:
        parts = [self.template.opening_instruction, ""]
        if include_timestamp:
            parts += [
                "## Current time",
                "Generated at: __CURRENT_UTC_TIME__",
                "Timestamp: __CURRENT_TIMESTAMP__",
                "",
            ]
        parts.append("## Reference material")
        if custom_content:
            parts.append(custom_content)

        research: dict[str, Any] = {}
        for ref in sources:
            if isinstance(ref, MemoryRef):
                section = await self._render_memory(ctx, ref)
                if section:
                    parts.append(section)
            elif isinstance(ref, PriorResult):
                value = ctx.get_research(ref.agent_name)
                if value is not None:
                    research[ref.agent_name] = value
            else:
                raise TypeError(f"Unknown data source: {ref!r}")

        if research:
            formatted = self.formatter.format_research_results(research)
            parts.append(await self.formatter.compress_if_needed(ctx, formatted, "research results"))

        parts.append(self.template.closing_instruction)
        prompt = "\n".join(parts)
        return await self.formatter.compress_if_needed(ctx, prompt, "full prompt")

    async def _render_memory(self, ctx: GeneratorContext, ref: MemoryRef) -> str | None:
        renderer = _MEMORY_RENDERERS.get(ref.key)
        if renderer is None:
            logger.debug("No formatter for %s, skipping", ref)
            return None
        _, render, label = renderer
        value = resolve_source(ctx, ref)
        if value is None:
            return None
        return await self.formatter.compress_if_needed(ctx, render(self.formatter, value), label)


# key -> (stored type, renderer, label used for compression)
_MEMORY_RENDERERS: dict[str, tuple[Any, Any, str]] = {
    ScopedKeys.PROJECT_STRUCTURE: (
        ProjectStructure, DataFormatter.format_project_structure, "project structure",
    ),
    ScopedKeys.CODE_INSIGHTS: (
        list[CodeInsight], DataFormatter.format_code_insights, "code insights",
    ),
    ScopedKeys.ORIGINAL_DOCUMENT: (
        str, DataFormatter.format_readme_content, "README",
    ),
    ScopedKeys.RELATIONSHIPS: (
        RelationshipAnalysis, DataFormatter.format_dependency_analysis, "dependencies",
    ),
}


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------

class StepAgent(ABC):
    """Base class for research agents and documentation editors.

    Subclasses set ``agent_type`` and ``output_model`` and implement
    ``data_config`` and ``prompt_template``.
    """

    agent_type: str = ""
    memory_scope: str = MemoryScope.STUDIES_RESEARCH
    output_model: Any = str
    include_timestamp: bool = False

    @abstractmethod
    def data_config(self) -> AgentDataConfig:
        ...

    @abstractmethod
    def prompt_template(self) -> PromptTemplate:
        ...

    async def provide_custom_prompt_content(self, ctx: GeneratorContext) -> str | None:
        return None

    def post_process(self, result: Any, ctx: GeneratorContext) -> None:
        pass

    @property
    def cache_scope(self) -> str:
        return f"{self.memory_scope}/{self.agent_type}"

    def check_required_sources(self, ctx: GeneratorContext) -> None:
        for ref in self.data_config().required:
            if resolve_source(ctx, ref) is None:
                raise MissingRequiredSource(str(ref))

    async def build_prompts(self, ctx: GeneratorContext) -> tuple[str, str]:
        config = self.data_config()
        template = self.prompt_template()
        system = f"{template.system_prompt}\n\n{ctx.config.target_language.prompt_instruction()}"
        custom = await self.provide_custom_prompt_content(ctx)
        user = await PromptBuilder(template).build_user_prompt(
            ctx, config.required + config.optional, custom, self.include_timestamp,
        )
        return system, user

    async def execute(self, ctx: GeneratorContext) -> Any:
        self.check_required_sources(ctx)
        system, user = await self.build_prompts(ctx)
        params = AgentExecuteParams(
            prompt_sys=system,
            prompt_user=user,
            cache_scope=self.cache_scope,
            log_tag=self.agent_type,
        )
        result = await dispatch(ctx, self.prompt_template().call_mode, params, self.output_model)
        ctx.store_to_memory(self.memory_scope, self.agent_type, result)
        self.post_process(result, ctx)
        console.print(f"   [green]✓[/] {self.agent_type} complete")
        return result
