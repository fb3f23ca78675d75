"""Research agents for docsmith.

Modules
-------
base         — StepAgent contract, data sources, prompt assembly
context      — GeneratorContext: memory, cache and invoker of one run
executor     — cache-checked dispatch over the three call modes
formatting   — renderers for project data fed into prompts
compression  — model-driven condensing of oversized prompt sections
orchestrator — macro → meso → micro research tiers
research/    — the individual research agents
compose/     — editors turning research results into documents
"""

from .base import AgentDataConfig, DataSource, MemoryRef, PriorResult, PromptTemplate, StepAgent
from .context import GeneratorContext, MemoryScope, ScopedKeys
from .orchestrator import ResearchOrchestrator, ResearchOutcome

__all__ = [
    "AgentDataConfig",
    "DataSource",
    "GeneratorContext",
    "MemoryRef",
    "MemoryScope",
    "PriorResult",
    "PromptTemplate",
    "ResearchOrchestrator",
    "ResearchOutcome",
    "ScopedKeys",
    "StepAgent",
]
