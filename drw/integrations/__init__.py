"""External service integrations.

Thin wrappers around external services (Langfuse observability).
"""

from drw.integrations.observability import (
    get_langfuse_callbacks,
    get_observed_gemini_llm,
    get_observed_llm,
    is_observability_enabled,
    reset_observability,
)

__all__ = [
    "get_langfuse_callbacks",
    "get_observed_gemini_llm",
    "get_observed_llm",
    "is_observability_enabled",
    "reset_observability",
]
