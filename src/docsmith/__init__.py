"""docsmith — research a code base with LLM agents and document it."""

__version__ = "0.1.0"
