"""Research agents, from whole-system context down to single domains."""

from .architecture import ArchitectureResearcher
from .boundary import BoundaryAnalyzer
from .domain_modules import DomainModulesDetector
from .key_modules import KeyModulesInsight
from .system_context import SystemContextResearcher
from .types import AgentType
from .workflow import WorkflowResearcher

__all__ = [
    "AgentType",
    "ArchitectureResearcher",
    "BoundaryAnalyzer",
    "DomainModulesDetector",
    "KeyModulesInsight",
    "SystemContextResearcher",
    "WorkflowResearcher",
]
