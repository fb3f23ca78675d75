"""Meso tier: architecture overview, written with the file tools at hand."""

from __future__ import annotations

from ..base import AgentDataConfig, DataSource, PriorResult, PromptTemplate, StepAgent
from ...llm.types import CallMode
from .types import AgentType


class ArchitectureResearcher(StepAgent):
    agent_type = AgentType.ARCHITECTURE.value
    output_model = str

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
            ],
            optional=[DataSource.PROJECT_STRUCTURE, DataSource.DEPENDENCY_ANALYSIS],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a software architect. Describe the architecture of the "
                "project: its layers, main components, how they communicate and the "
                "key technical decisions. Use the file tools to confirm details in "
                "the source when the material is not enough. Include a Mermaid "
                "diagram of the component structure."
            ),
            opening_instruction="Analyze the system architecture using this research material:",
            closing_instruction=(
                "Write the architecture analysis as Markdown. Base every statement "
                "on the material or on files you inspected."
            ),
            call_mode=CallMode.PROMPT_WITH_TOOLS,
        )
