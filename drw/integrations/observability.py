"""Observability integration using Langfuse.

Models built here carry the Langfuse LangChain callback handler, so every
planner and section-writer call made through them is traced.

Configuration (environment or .env):
    - LANGFUSE_PUBLIC_KEY, LANGFUSE_SECRET_KEY, LANGFUSE_HOST: required to trace
    - LANGFUSE_ENABLED: "false" disables tracing without a warning

Usage:
    from drw.integrations.observability import get_observed_llm

    llm = get_observed_llm(model="gpt-4o-mini", name="section-writer")
"""

from __future__ import annotations

import logging
import os
from typing import Any

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

logger = logging.getLogger(__name__)

_REQUIRED_VARS = ("LANGFUSE_PUBLIC_KEY", "LANGFUSE_SECRET_KEY", "LANGFUSE_HOST")


class _QuietOtelFilter(logging.Filter):
    """Collapses OTEL exporter failures into a single warning line."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _tracing_requested():
            return False
        exc = record.exc_info[1] if record.exc_info else None
        text = f"{record.getMessage()} {exc or ''}".lower()
        if "export" in text or "connection" in text or "refused" in text:
            logger.warning("Langfuse tracing export failed: %s", exc or record.getMessage())
            return False
        return True


for _logger_name in ("opentelemetry.exporter", "opentelemetry.sdk"):
    logging.getLogger(_logger_name).addFilter(_QuietOtelFilter())

_langfuse_handler: BaseCallbackHandler | None = None
_langfuse_init_attempted: bool = False


def _tracing_requested() -> bool:
    return os.getenv("LANGFUSE_ENABLED", "true").lower() != "false"


def _get_langfuse_handler() -> BaseCallbackHandler | None:
    """Get or create the Langfuse callback handler, once per process.

    Returns None if Langfuse is disabled, not configured, or fails to start.
    """
    global _langfuse_handler, _langfuse_init_attempted

    if not _tracing_requested():
        return None
    if _langfuse_handler is not None:
        return _langfuse_handler
    if _langfuse_init_attempted:
        return None
    _langfuse_init_attempted = True

    missing = [name for name in _REQUIRED_VARS if not os.getenv(name)]
    if missing:
        logger.warning("Langfuse observability disabled: missing environment variables: %s", ", ".join(missing))
        return None

    try:
        from langfuse.langchain import CallbackHandler

        _langfuse_handler = CallbackHandler()
    except Exception as e:
        logger.warning("Langfuse observability disabled: initialization failed: %s", e)
        return None
    logger.info("Langfuse observability enabled (host: %s)", os.getenv("LANGFUSE_HOST"))
    return _langfuse_handler


def reset_observability() -> None:
    """Forget the cached handler so the next call re-reads the environment."""
    global _langfuse_handler, _langfuse_init_attempted
    _langfuse_handler = None
    _langfuse_init_attempted = False


def get_langfuse_callbacks() -> list[BaseCallbackHandler]:
    """Langfuse callbacks for manual injection into LangChain calls (empty if not configured).

    Example:
        llm.invoke(messages, config={"callbacks": get_langfuse_callbacks()})
    """
    handler = _get_langfuse_handler()
    return [handler] if handler else []


def _with_tracing(llm_kwargs: dict[str, Any], name: str | None) -> dict[str, Any]:
    callbacks = get_langfuse_callbacks()
    if callbacks:
        llm_kwargs["callbacks"] = callbacks
    if name:
        llm_kwargs["name"] = name
    return llm_kwargs


def get_observed_llm(
    model: str,
    base_url: str | None = None,
    api_key: str | None = None,
    temperature: float = 0,
    name: str | None = None,
    **kwargs: Any,
) -> BaseChatModel:
    """Create a ChatOpenAI instance with Langfuse tracing attached when configured.

    Args:
        model: Model name/identifier.
        base_url: API endpoint URL. Defaults to OpenAI if not set.
        api_key: API key. Falls back to OPENAI_API_KEY env var.
        temperature: Sampling temperature.
        name: Name to assign to the LLM for tracing identification.
        **kwargs: Additional arguments passed to ChatOpenAI (e.g. max_tokens).
    """
    llm_kwargs: dict[str, Any] = {"model": model, "temperature": temperature, **kwargs}
    if base_url:
        llm_kwargs["base_url"] = base_url
    if api_key:
        llm_kwargs["api_key"] = api_key
    return ChatOpenAI(**_with_tracing(llm_kwargs, name))


def get_observed_gemini_llm(
    model: str | None = None,
    api_key: str | None = None,
    temperature: float = 0,
    name: str | None = None,
    **kwargs: Any,
) -> BaseChatModel:
    """Create a Google Gemini instance with Langfuse tracing attached when configured.

    Requires the optional ``langchain-google-genai`` package (``gemini`` extra).

    Args:
        model: Model name/identifier. Falls back to GEMINI_MODEL env var.
        api_key: Google API key. Falls back to GOOGLE_API_KEY, then GEMINI_API_KEY.
        temperature: Sampling temperature.
        name: Name to assign to the LLM for tracing identification.
        **kwargs: Additional arguments passed to ChatGoogleGenerativeAI (e.g. max_output_tokens).
    """
    try:
        from langchain_google_genai import ChatGoogleGenerativeAI
    except ImportError as e:
        raise ImportError(
            "langchain-google-genai not installed. Install with:\n"
            "  pip install 'deep-research-workflow[gemini]'"
        ) from e

    model_name = (model or os.getenv("GEMINI_MODEL", "gemini-2.5-flash")).strip()
    gemini_api_key = (api_key or os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY") or "").strip()
    if not gemini_api_key:
        raise ValueError("Gemini API key not found. Set GOOGLE_API_KEY or GEMINI_API_KEY, or pass api_key=...")

    llm_kwargs: dict[str, Any] = {
        "model": model_name,
        "temperature": temperature,
        "api_key": gemini_api_key,
        **kwargs,
    }
    return ChatGoogleGenerativeAI(**_with_tracing(llm_kwargs, name))


def is_observability_enabled() -> bool:
    """True if Langfuse is configured and ready."""
    return _get_langfuse_handler() is not None
