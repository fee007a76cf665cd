from .errors import AuthCompletionError, CompletionError, TransientCompletionError, is_retryable
from .provider import (
    AnthropicProvider,
    CompletionProvider,
    CompletionResult,
    FallbackProvider,
    OpenAICompatibleProvider,
    build_provider,
    check_health,
    is_configured,
)

__all__ = [
    "AnthropicProvider",
    "AuthCompletionError",
    "CompletionError",
    "CompletionProvider",
    "CompletionResult",
    "FallbackProvider",
    "OpenAICompatibleProvider",
    "TransientCompletionError",
    "build_provider",
    "check_health",
    "is_configured",
    "is_retryable",
]
