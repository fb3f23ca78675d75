"""Editors that turn research results into the top-level documents.

Every editor is a ``StepAgent`` writing Markdown into the documentation
scope. Prompts carry a ``## Current time`` section whose placeholders are
filled after the call, so cached prompts stay stable across runs.
"""

from __future__ import annotations

from ..base import AgentDataConfig, DataSource, PriorResult, PromptTemplate, StepAgent
from ..context import MemoryScope
from ..research.types import AgentType
from ...llm.types import CallMode
from .types import DocType

CODE_LOCATION_RULES = (
    "The document helps developers understand their own project. Whenever you "
    "mention a module, component, class or function, give its location in the "
    "project as a path relative to the project root, e.g. "
    "`📁 Defined in: app/services/order_service.py`."
)


class DocEditor(StepAgent):
    """Base for the compose tier: Markdown out, timestamped prompt."""

    memory_scope = MemoryScope.DOCUMENTATION
    output_model = str
    include_timestamp = True


class OverviewEditor(DocEditor):
    agent_type = DocType.OVERVIEW.value

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
            ],
            optional=[DataSource.README_CONTENT],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a technical writer producing the system-context document "
                "of the C4 model for a software project.\n\n"
                f"{CODE_LOCATION_RULES}\n\n"
                "Cover the system overview, target users, the system boundary, "
                "external interactions and a system context diagram."
            ),
            opening_instruction=(
                "Based on the research material below, write a complete C4 "
                "system-context document. Start from the system context report "
                "and use the domain modules to explain the internal structure."
            ),
            closing_instruction=(
                "\n## Output requirements\n"
                "- Markdown, starting with `# System Overview`\n"
                "- Sections: project introduction, target users, system boundary, "
                "external systems, system context diagram (Mermaid), technology overview\n"
                "- Base every statement on the research material"
            ),
            call_mode=CallMode.PROMPT,
        )


class ArchitectureEditor(DocEditor):
    agent_type = DocType.ARCHITECTURE.value

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
                PriorResult(AgentType.ARCHITECTURE.value),
                PriorResult(AgentType.WORKFLOW.value),
            ],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a technical writer producing the container and component "
                "views of the C4 model for a software project.\n\n"
                f"{CODE_LOCATION_RULES}\n\n"
                "Describe the layers, the main components and their "
                "responsibilities, the data structures they share and how they "
                "communicate."
            ),
            opening_instruction=(
                "Write the architecture document from the research material below. "
                "The architecture report is the primary source; the workflow report "
                "shows how components cooperate at runtime."
            ),
            closing_instruction=(
                "\n## Output requirements\n"
                "- Markdown, starting with `# Architecture Overview`\n"
                "- At least one Mermaid diagram of the component structure\n"
                "- A section on key design decisions and their trade-offs"
            ),
            call_mode=CallMode.PROMPT,
        )


class WorkflowEditor(DocEditor):
    agent_type = DocType.WORKFLOW.value

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
                PriorResult(AgentType.WORKFLOW.value),
                DataSource.CODE_INSIGHTS,
            ],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a technical writer documenting the core workflows of a "
                "software project.\n\n"
                f"{CODE_LOCATION_RULES}\n\n"
                "Use the file tools to confirm the entry points and the functions "
                "each step runs through."
            ),
            opening_instruction=(
                "Document the main workflow and the other core workflows of the "
                "system from the research material below:"
            ),
            closing_instruction=(
                "\n## Output requirements\n"
                "- Markdown, starting with `# Core Workflows`\n"
                "- One section per workflow with its steps in order\n"
                "- A Mermaid sequence or flow diagram for the main workflow"
            ),
            call_mode=CallMode.PROMPT_WITH_TOOLS,
        )


class BoundaryEditor(DocEditor):
    agent_type = DocType.BOUNDARY.value

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[PriorResult(AgentType.BOUNDARY.value)],
            optional=[PriorResult(AgentType.SYSTEM_CONTEXT.value)],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a technical writer documenting how a software project is "
                "called from the outside: CLI commands, API endpoints, router "
                "routes and integration suggestions.\n\n"
                f"{CODE_LOCATION_RULES}"
            ),
            opening_instruction="Write the boundary interface document from the research material below:",
            closing_instruction=(
                "\n## Output requirements\n"
                "- Markdown, starting with `# Boundary Interfaces`\n"
                "- A table per interface kind with its parameters\n"
                "- Omit interface kinds the project does not have"
            ),
            call_mode=CallMode.PROMPT,
        )


class CodeIndexEditor(DocEditor):
    agent_type = DocType.CODE_INDEX.value

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required=[DataSource.CODE_INSIGHTS],
            optional=[
                PriorResult(AgentType.SYSTEM_CONTEXT.value),
                PriorResult(AgentType.DOMAIN_MODULES.value),
                PriorResult(AgentType.ARCHITECTURE.value),
            ],
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=(
                "You are a technical writer building a code index: a navigable "
                "map from concepts to the files that implement them."
            ),
            opening_instruction=(
                "Build the code index from the code insights below. Group files "
                "by domain module where the research material names one."
            ),
            closing_instruction=(
                "\n## Output requirements\n"
                "- Markdown, starting with `# Code Index`\n"
                "- For each file: its path, purpose and the main names it defines\n"
                "- A quick lookup table from task to file at the end"
            ),
            call_mode=CallMode.PROMPT,
        )
