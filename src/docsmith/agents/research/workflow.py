"""Meso tier: the main functional workflows."""

from __future__ import annotations

from ..base import AgentDataConfig, DataSource, PriorResult, PromptTemplate, StepAgent
from ...llm.types import CallMode
from .types import AgentType, WorkflowReport


class WorkflowResearcher(StepAgent):
    agent_type = AgentType.WORKFLOW.value
    output_model = WorkflowReport

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
                DataSource.CODE_INSIGHTS,
            ],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "Analyze the core functional workflows of the project from a "
                "functional point of view, without excessive technical detail."
            ),
            opening_instruction=(
                "The following research reports describe the system; use them to "
                "analyze its main workflow:"
            ),
            closing_instruction="Describe the core workflows of the system based on the material.",
            call_mode=CallMode.EXTRACT,
        )
