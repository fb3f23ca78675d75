"""Model access: providers, the resilient invoker and built-in tools.

Supports OpenAI, Ollama and Azure OpenAI (through the ``openai`` package)
and Anthropic (through the ``anthropic`` package).
"""

from .invoker import ModelInvoker, evaluate_befitting_model  # noqa: F401
from .providers import (  # noqa: F401
    AsyncLLMProvider,
    get_async_provider,
    provider_from_config,
    SUPPORTED_PROVIDERS,
    DEFAULT_PROVIDER,
)
from .types import CallMode, InvocationResult, ReActTrace, TokenUsage  # noqa: F401
