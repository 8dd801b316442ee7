"""LLM Factory for centralized model creation and configuration."""

from __future__ import annotations

import os
from typing import Any

from langchain_core.language_models import BaseChatModel

from drw.integrations.observability import get_observed_gemini_llm, get_observed_llm

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


class DefaultLLMFactory:
    """Factory for creating configured LLM instances with observability."""

    def __init__(self, prefer_gemini: bool = False, agent_config: dict[str, dict[str, Any]] | None = None):
        """Initialize the factory.

        Args:
            prefer_gemini: Whether to prefer Gemini models when no provider is requested
                          and Gemini credentials are available.
            agent_config: Optional configuration overrides for specific agents/nodes.
                          Map from agent name to kwargs dict (e.g. {"section-writer": {"model": "gpt-4o"}}).
        """
        self.prefer_gemini = prefer_gemini
        self.agent_config = agent_config or {}
        self._check_credentials()

    def _check_credentials(self) -> None:
        """Cache credential availability."""
        self.has_gemini = bool(os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"))
        self.has_openai = bool(os.getenv("OPENAI_API_KEY") or os.getenv("API_KEY"))

    def resolve_provider(self, provider: str | None) -> str:
        """Pick the provider actually used for a request."""
        effective = (provider or "").lower() or ("gemini" if self.prefer_gemini and self.has_gemini else "openai")
        if effective in ("gemini", "google"):
            if self.has_gemini:
                return "gemini"
            # Fall back to OpenAI if Gemini requested but missing
            if self.has_openai:
                return "openai"
            raise ValueError("No Gemini or OpenAI credentials found.")
        return "openai"

    def get_llm(
        self,
        name: str,
        provider: str | None = None,
        model: str | None = None,
        temperature: float = 0,
        **kwargs: Any,
    ) -> BaseChatModel:
        """Get an LLM instance with the specified configuration.

        Args:
            name: The name for the agent/node (used for trace naming).
            provider: 'openai', 'gemini', or None (auto-detect based on preference/availability).
            model: Specific model name to use.
            temperature: Sampling temperature.
            **kwargs: Additional model arguments. `max_tokens` is translated for Gemini.

        Returns:
            Configured BaseChatModel.
        """
        overrides = self.agent_config.get(name, {})

        # Per-agent overrides win over call arguments
        resolved_provider = overrides.get("provider") or provider
        resolved_model = overrides.get("model") or model
        resolved_temp = overrides.get("temperature", temperature)

        combined_kwargs = {**kwargs, **overrides}
        for k in ["provider", "model", "temperature"]:
            combined_kwargs.pop(k, None)

        if self.resolve_provider(resolved_provider) == "gemini":
            if "max_tokens" in combined_kwargs:
                combined_kwargs["max_output_tokens"] = combined_kwargs.pop("max_tokens")
            return get_observed_gemini_llm(
                model=resolved_model or os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
                temperature=resolved_temp,
                name=name,
                **combined_kwargs,
            )

        return get_observed_llm(
            model=resolved_model or os.getenv("MODEL_NAME", DEFAULT_OPENAI_MODEL),
            base_url=combined_kwargs.pop("base_url", None) or os.getenv("OPENAI_BASE_URL"),
            api_key=combined_kwargs.pop("api_key", None) or os.getenv("OPENAI_API_KEY") or os.getenv("API_KEY"),
            temperature=resolved_temp,
            name=name,
            **combined_kwargs,
        )
