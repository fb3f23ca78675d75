"""Reports produced by the research agents."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AgentType(str, Enum):
    SYSTEM_CONTEXT = "SystemContextResearcher"
    DOMAIN_MODULES = "DomainModulesDetector"
    ARCHITECTURE = "ArchitectureResearcher"
    WORKFLOW = "WorkflowResearcher"
    KEY_MODULES = "KeyModulesInsight"
    BOUNDARY = "BoundaryAnalyzer"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# System context
# ---------------------------------------------------------------------------

class UserPersona(BaseModel):
    name: str
    description: str = ""
    needs: list[str] = Field(default_factory=list)


class ExternalSystem(BaseModel):
    name: str
    description: str = ""
    interaction_type: str = ""


class SystemBoundary(BaseModel):
    scope: str = ""
    included_components: list[str] = Field(default_factory=list)
    excluded_components: list[str] = Field(default_factory=list)


class SystemContextReport(BaseModel):
    project_name: str = ""
    project_type: str = ""
    project_description: str = ""
    business_value: str = ""
    target_users: list[UserPersona] = Field(default_factory=list)
    external_systems: list[ExternalSystem] = Field(default_factory=list)
    system_boundary: SystemBoundary = Field(default_factory=SystemBoundary)
    confidence_score: float = 0.0


# ---------------------------------------------------------------------------
# Domain modules
# ---------------------------------------------------------------------------

class SubModule(BaseModel):
    name: str
    description: str = ""
    code_paths: list[str] = Field(default_factory=list)
    key_functions: list[str] = Field(default_factory=list)
    importance: float = 0.0


class DomainModule(BaseModel):
    name: str
    description: str = ""
    domain_type: str = ""
    sub_modules: list[SubModule] = Field(default_factory=list)
    code_paths: list[str] = Field(default_factory=list)
    importance: float = 0.0
    complexity: float = 0.0

    def all_code_paths(self) -> set[str]:
        paths = set(self.code_paths)
        for sub in self.sub_modules:
            paths.update(sub.code_paths)
        return paths


class DomainRelation(BaseModel):
    from_domain: str
    to_domain: str
    relation_type: str = ""
    strength: float = 0.0
    description: str = ""


class DomainModulesReport(BaseModel):
    domain_modules: list[DomainModule] = Field(default_factory=list)
    domain_relations: list[DomainRelation] = Field(default_factory=list)
    architecture_summary: str = ""
    confidence_score: float = 0.0


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class Workflow(BaseModel):
    name: str
    description: str = ""
    flowchart_mermaid: str = ""


class WorkflowReport(BaseModel):
    main_workflow: Workflow
    other_important_workflows: list[Workflow] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Key modules
# ---------------------------------------------------------------------------

class KeyModuleReport(BaseModel):
    domain_name: str = ""
    module_name: str = ""
    module_description: str = ""
    functionality: str = ""
    workflow: str = ""
    internal_architecture: str = ""
    related_code_paths: list[str] = Field(default_factory=list)
    confidence_score: float = 0.0


# ---------------------------------------------------------------------------
# Boundaries
# ---------------------------------------------------------------------------

class CLIArgument(BaseModel):
    name: str
    description: str = ""
    required: bool = False
    default_value: Optional[str] = None


class CLIBoundary(BaseModel):
    command: str
    description: str = ""
    arguments: list[CLIArgument] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)
    source_location: str = ""


class APIBoundary(BaseModel):
    endpoint: str
    method: str = ""
    description: str = ""
    request_format: Optional[str] = None
    response_format: Optional[str] = None
    authentication: Optional[str] = None
    source_location: str = ""


class RouterBoundary(BaseModel):
    path: str
    description: str = ""
    source_component: str = ""
    params: list[str] = Field(default_factory=list)


class IntegrationSuggestion(BaseModel):
    integration_type: str
    description: str = ""
    example_code: str = ""
    best_practices: list[str] = Field(default_factory=list)


class BoundaryAnalysisReport(BaseModel):
    cli_boundaries: list[CLIBoundary] = Field(default_factory=list)
    api_boundaries: list[APIBoundary] = Field(default_factory=list)
    router_boundaries: list[RouterBoundary] = Field(default_factory=list)
    integration_suggestions: list[IntegrationSuggestion] = Field(default_factory=list)
    confidence_score: float = 0.0
