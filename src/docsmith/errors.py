"""Exception hierarchy shared by the cache, model and agent layers."""

from __future__ import annotations


class DocsmithError(Exception):
    """Base class for every error raised by docsmith."""


class MemorySerializationError(DocsmithError):
    """A value handed to the memory store could not be encoded as JSON."""


class CacheIOError(DocsmithError):
    """Reading or writing a cache entry failed.

    Always recovered inside ``CacheManager``: the failure is logged and
    counted, and the lookup degrades to a miss.
    """


class ProviderError(DocsmithError):
    """The model provider failed after all retry attempts."""

    def __init__(self, message: str, *, attempts: int = 0, model: str = "") -> None:
        super().__init__(message)
        self.attempts = attempts
        self.model = model


class MissingRequiredSource(DocsmithError):
    """An agent's required data source did not resolve."""

    def __init__(self, source: str) -> None:
        super().__init__(f"Required data source {source} is not available")
        self.source = source


class OrchestratorDomainFailure(DocsmithError):
    """Analysis of a single domain in the fan-out tier failed."""

    def __init__(self, domain: str, cause: BaseException) -> None:
        super().__init__(f"Domain '{domain}' analysis failed: {cause}")
        self.domain = domain
        self.cause = cause


class AgentExecutionError(DocsmithError):
    """A research or documentation agent failed and stopped the pipeline."""

    def __init__(self, agent: str, cause: BaseException) -> None:
        super().__init__(f"Agent {agent} failed: {cause}")
        self.agent = agent
        self.cause = cause
