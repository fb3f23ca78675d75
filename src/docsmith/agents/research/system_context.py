"""Macro tier: project goals, users and system boundary."""

from __future__ import annotations

from ..base import AgentDataConfig, DataSource, PromptTemplate, StepAgent
from ...llm.types import CallMode
from .types import AgentType, SystemContextReport


class SystemContextResearcher(StepAgent):
    agent_type = AgentType.SYSTEM_CONTEXT.value
    output_model = SystemContextReport

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[DataSource.PROJECT_STRUCTURE, DataSource.CODE_INSIGHTS],
            optional=[DataSource.README_CONTENT],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a software architecture analyst focused on project goals "
                "and system boundaries.\n\n"
                "From the project information provided, determine:\n"
                "1. The core goal and business value of the project\n"
                "2. The project type and its technical characteristics\n"
                "3. Target users and usage scenarios\n"
                "4. External systems it interacts with\n"
                "5. The system boundary\n\n"
                "Return the analysis as structured JSON."
            ),
            opening_instruction=(
                "Based on the research material below, analyze the core goal "
                "and positioning of the project:"
            ),
            closing_instruction=(
                "\n## Requirements\n"
                "- Identify the project type and technical characteristics accurately\n"
                "- Define target users and usage scenarios clearly\n"
                "- Draw the system boundary explicitly\n"
                "- Keep the result at the system-context level of the C4 model"
            ),
            call_mode=CallMode.EXTRACT,
        )
