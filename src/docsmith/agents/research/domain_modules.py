"""Meso tier: split the project into business/technical domains."""

from __future__ import annotations

import logging

from ..base import AgentDataConfig, DataSource, PriorResult, PromptTemplate, StepAgent
from ..formatting import FormatterConfig
from ...llm.types import CallMode
from .types import AgentType, DomainModulesReport

logger = logging.getLogger("docsmith.agents.research")


class DomainModulesDetector(StepAgent):
    agent_type = AgentType.DOMAIN_MODULES.value
    output_model = DomainModulesReport

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                DataSource.PROJECT_STRUCTURE,
                DataSource.CODE_INSIGHTS,
            ],
            optional=[DataSource.DEPENDENCY_ANALYSIS],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a domain-driven design expert. Identify the high-level "
                "functional domains of the project and the sub-modules inside each. "
                "Every domain and sub-module must list the relative code paths "
                "that implement it. Rate importance and complexity from 0 to 10."
            ),
            opening_instruction="Identify the domain modules of the project from this material:",
            closing_instruction=(
                "\n## Requirements\n"
                "- Group by function, not by directory alone\n"
                "- Use real paths from the project structure in code_paths\n"
                "- Describe how the domains relate to each other"
            ),
            call_mode=CallMode.EXTRACT,
            formatter=FormatterConfig(only_directories_when_files_more_than=500),
        )

    def post_process(self, result: DomainModulesReport, ctx) -> None:
        logger.info(
            "Detected %d domains: %s",
            len(result.domain_modules),
            ", ".join(d.name for d in result.domain_modules),
        )
