"""Micro tier: external interfaces (CLI, HTTP API, page routes)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from rich.console import Console

from ..base import AgentDataConfig, DataSource, PriorResult, PromptTemplate, StepAgent
from ..context import GeneratorContext, MemoryScope, ScopedKeys
from ..formatting import FormatterConfig
from ...llm.types import CallMode
from ...models import CodeInsight, CodePurpose
from .types import AgentType, BoundaryAnalysisReport

logger = logging.getLogger("docsmith.agents.research")
console = Console()

BOUNDARY_PURPOSES = {
    CodePurpose.ENTRY,
    CodePurpose.API,
    CodePurpose.CONTROLLER,
    CodePurpose.ROUTER,
    CodePurpose.CONFIG,
}

# Decorator / call styles used by common web frameworks.
_ROUTE_PATTERNS = [
    # Flask, FastAPI, actix, rocket: @app.get("/x"), #[get("/x")]
    re.compile(r"""[@#]\[?\s*(?:\w+\.)?(get|post|put|delete|patch)\s*\(\s*["']([^"']+)["']""", re.I),
    # Express, axum: app.get('/x', ...), .route("/x", get(handler))
    re.compile(r"""\b(?:app|router)\.(get|post|put|delete|patch)\s*\(\s*["']([^"']+)["']""", re.I),
    # Spring: @GetMapping("/x")
    re.compile(r"""@(Get|Post|Put|Delete|Patch)Mapping\s*\(\s*(?:value\s*=\s*)?["']([^"']+)["']"""),
]


@dataclass
class ApiEndpoint:
    method: str
    path: str
    file_path: str


def extract_api_endpoints(insights: list[CodeInsight]) -> list[ApiEndpoint]:
    """Find route declarations in the source of API and controller files."""
    endpoints: list[ApiEndpoint] = []
    seen: set[tuple[str, str, str]] = set()
    for insight in insights:
        dossier = insight.code_dossier
        if dossier.code_purpose not in (CodePurpose.API, CodePurpose.CONTROLLER, CodePurpose.ROUTER):
            continue
        for pattern in _ROUTE_PATTERNS:
            for method, path in pattern.findall(dossier.source_summary):
                key = (method.upper(), path, dossier.file_path)
                if key not in seen:
                    seen.add(key)
                    endpoints.append(ApiEndpoint(*key))
    return endpoints


class BoundaryAnalyzer(StepAgent):
    agent_type = AgentType.BOUNDARY.value
    output_model = BoundaryAnalysisReport

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                DataSource.PROJECT_STRUCTURE,
                DataSource.DEPENDENCY_ANALYSIS,
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
            ],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a system boundary analyst focused on how external callers "
                "use a software system.\n\n"
                "From the boundary-related code provided, identify:\n"
                "1. CLI interfaces: commands, arguments, options, usage examples\n"
                "2. API interfaces: HTTP endpoints, request/response formats, authentication\n"
                "3. Page routes: URL paths and route parameters\n"
                "4. Integration suggestions: best practices and example code\n\n"
                "Return the analysis as structured JSON."
            ),
            opening_instruction=(
                "Analyze the boundary interfaces of the system from the following "
                "boundary-related code and project information:"
            ),
            closing_instruction=(
                "\n## Requirements\n"
                "- Focus on Entry, Api, Controller, Config and Router code\n"
                "- Derive boundaries from interface definitions and parameters\n"
                "- Give practical usage examples and integration advice\n"
                "- Leave a list empty when that kind of boundary does not exist"
            ),
            call_mode=CallMode.EXTRACT,
            formatter=FormatterConfig(
                include_source_code=True,
                code_insights_limit=100,
                only_directories_when_files_more_than=500,
            ),
        )

    async def provide_custom_prompt_content(self, ctx: GeneratorContext) -> str | None:
        insights = ctx.get_from_memory(
            MemoryScope.PREPROCESS, ScopedKeys.CODE_INSIGHTS, list[CodeInsight],
        ) or []
        boundary = [i for i in insights if i.code_dossier.code_purpose in BOUNDARY_PURPOSES]
        if not boundary:
            return "### Boundary-related code\nNo obvious boundary interface code was found.\n"

        lines = ["### Boundary-related code"]
        for n, insight in enumerate(boundary, 1):
            d = insight.code_dossier
            lines.append(f"{n}. `{d.file_path}` ({d.code_purpose.display_name})")
            if insight.interfaces:
                names = ", ".join(i.name for i in insight.interfaces[:20])
                lines.append(f"   Interfaces: {names}")
            if d.source_summary:
                lines.append(f"```\n{d.source_summary}\n```")

        endpoints = extract_api_endpoints(boundary)
        if endpoints:
            lines += ["", "#### Detected API endpoints"]
            lines += [f"- **{e.method} {e.path}** in `{e.file_path}`" for e in endpoints]
        return "\n".join(lines) + "\n"

    def post_process(self, result: BoundaryAnalysisReport, ctx: GeneratorContext) -> None:
        console.print(
            f"   Boundaries: {len(result.cli_boundaries)} CLI, "
            f"{len(result.api_boundaries)} API, {len(result.router_boundaries)} routes, "
            f"{len(result.integration_suggestions)} integration suggestions, "
            f"confidence {result.confidence_score:.1f}/10"
        )
