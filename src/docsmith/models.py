"""Project facts gathered by preprocessing and fed to the research agents."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Project structure
# ---------------------------------------------------------------------------

class FileInfo(BaseModel):
    path: str                       # relative to the project root, POSIX style
    name: str
    size: int = 0
    extension: Optional[str] = None
    line_count: int = 0
    is_core: bool = False
    importance_score: float = 0.0
    last_modified: Optional[str] = None


class DirectoryInfo(BaseModel):
    path: str
    name: str
    file_count: int = 0
    subdirectory_count: int = 0
    total_size: int = 0


class ProjectStructure(BaseModel):
    project_name: str
    root_path: str
    files: list[FileInfo] = Field(default_factory=list)
    directories: list[DirectoryInfo] = Field(default_factory=list)
    total_files: int = 0
    total_directories: int = 0
    file_types: dict[str, int] = Field(default_factory=dict)
    size_distribution: dict[str, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Code insights
# ---------------------------------------------------------------------------

class CodePurpose(str, Enum):
    """What role a source file plays in the project."""
    ENTRY = "entry"
    AGENT = "agent"
    PAGE = "page"
    WIDGET = "widget"
    SPECIFIC_FEATURE = "specificfeature"
    MODEL = "model"
    TYPES = "types"
    TOOL = "tool"
    UTIL = "util"
    CONFIG = "config"
    MIDDLEWARE = "middleware"
    PLUGIN = "plugin"
    ROUTER = "router"
    DATABASE = "database"
    API = "api"
    CONTROLLER = "controller"
    SERVICE = "service"
    MODULE = "module"
    LIB = "lib"
    TEST = "test"
    DOC = "doc"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _PURPOSE_NAMES[self]


_PURPOSE_NAMES: dict[CodePurpose, str] = {
    CodePurpose.ENTRY: "Project entry point",
    CodePurpose.AGENT: "Intelligent agent",
    CodePurpose.PAGE: "Frontend page",
    CodePurpose.WIDGET: "Frontend UI component",
    CodePurpose.SPECIFIC_FEATURE: "Feature-specific logic",
    CodePurpose.MODEL: "Data type or model",
    CodePurpose.TYPES: "Interface definitions",
    CodePurpose.TOOL: "Scenario-specific tool code",
    CodePurpose.UTIL: "Basic utility functions",
    CodePurpose.CONFIG: "Configuration",
    CodePurpose.MIDDLEWARE: "Middleware",
    CodePurpose.PLUGIN: "Plugin",
    CodePurpose.ROUTER: "Router",
    CodePurpose.DATABASE: "Database component",
    CodePurpose.API: "API definitions",
    CodePurpose.CONTROLLER: "Controller",
    CodePurpose.SERVICE: "Service",
    CodePurpose.MODULE: "Module",
    CodePurpose.LIB: "Library",
    CodePurpose.TEST: "Test",
    CodePurpose.DOC: "Documentation",
    CodePurpose.OTHER: "Other",
}


class ParameterInfo(BaseModel):
    name: str
    param_type: str = ""
    is_optional: bool = False
    description: Optional[str] = None


class InterfaceInfo(BaseModel):
    name: str
    interface_type: str = "function"    # function, method, class, ...
    visibility: str = "public"
    parameters: list[ParameterInfo] = Field(default_factory=list)
    return_type: Optional[str] = None
    description: Optional[str] = None
    line_number: Optional[int] = None


class Dependency(BaseModel):
    name: str
    path: Optional[str] = None
    is_external: bool = False
    line_number: Optional[int] = None
    dependency_type: str = "import"


class CodeComplexity(BaseModel):
    cyclomatic_complexity: float = 1.0
    lines_of_code: int = 0
    number_of_functions: int = 0
    number_of_classes: int = 0


class CodeDossier(BaseModel):
    name: str
    file_path: str
    source_summary: str = ""
    code_purpose: CodePurpose = CodePurpose.OTHER
    importance_score: float = 0.0
    description: Optional[str] = None
    functions: list[str] = Field(default_factory=list)
    interfaces: list[str] = Field(default_factory=list)


class CodeInsight(BaseModel):
    code_dossier: CodeDossier
    detailed_description: str = ""
    responsibilities: list[str] = Field(default_factory=list)
    interfaces: list[InterfaceInfo] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    complexity_metrics: CodeComplexity = Field(default_factory=CodeComplexity)


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

class DependencyType(str, Enum):
    IMPORT = "import"
    FUNCTION_CALL = "function_call"
    INHERITANCE = "inheritance"
    COMPOSITION = "composition"
    DATA_FLOW = "data_flow"
    MODULE = "module"

    @property
    def priority(self) -> int:
        """Ordering weight when only the top dependencies fit in a prompt."""
        return _DEPENDENCY_PRIORITY[self]


_DEPENDENCY_PRIORITY: dict[DependencyType, int] = {
    DependencyType.IMPORT: 10,
    DependencyType.INHERITANCE: 9,
    DependencyType.FUNCTION_CALL: 8,
    DependencyType.COMPOSITION: 7,
    DependencyType.DATA_FLOW: 6,
    DependencyType.MODULE: 5,
}


class CoreDependency(BaseModel):
    from_: str = Field(alias="from")
    to: str
    dependency_type: DependencyType = DependencyType.IMPORT
    importance: int = 1
    description: Optional[str] = None

    model_config = {"populate_by_name": True}


class ArchitectureLayer(BaseModel):
    name: str
    components: list[str] = Field(default_factory=list)
    level: int = 0


class RelationshipAnalysis(BaseModel):
    core_dependencies: list[CoreDependency] = Field(default_factory=list)
    architecture_layers: list[ArchitectureLayer] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)
