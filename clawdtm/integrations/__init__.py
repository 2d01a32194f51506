"""External service integrations."""

from clawdtm.integrations.llm import (
    AuthenticationError,
    ContextWindowExceededError,
    LLMClient,
    LLMError,
    LLMResponse,
    RateLimitError,
    ServiceUnavailableError,
    acompletion,
)

__all__ = [
    "acompletion",
    "AuthenticationError",
    "ContextWindowExceededError",
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "RateLimitError",
    "ServiceUnavailableError",
]
