"""Documentation editors run after research."""

from .composer import ComposeOutcome, DocumentationComposer, default_editors
from .editors import (
    ArchitectureEditor,
    BoundaryEditor,
    CodeIndexEditor,
    DocEditor,
    OverviewEditor,
    WorkflowEditor,
)
from .key_modules import KeyModuleDocEditor, KeyModulesInsightEditor
from .types import DEEP_EXPLORATION_DIR, DocTree, DocType

__all__ = [
    "ArchitectureEditor",
    "BoundaryEditor",
    "CodeIndexEditor",
    "ComposeOutcome",
    "DEEP_EXPLORATION_DIR",
    "DocEditor",
    "DocTree",
    "DocType",
    "DocumentationComposer",
    "KeyModuleDocEditor",
    "KeyModulesInsightEditor",
    "OverviewEditor",
    "WorkflowEditor",
    "default_editors",
]
