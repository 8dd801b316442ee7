"""Runtime configuration for the research workflow.

Every field can be set from a ``DRW_*`` environment variable via
``ResearchConfig.from_env()``. Model credentials are read by the LLM factory
(``OPENAI_API_KEY``/``API_KEY``, ``MODEL_NAME``, ``GEMINI_API_KEY``/``GOOGLE_API_KEY``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from drw import __version__

DEFAULT_USER_AGENT = f"DeepResearchWorkflow/{__version__}"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class ResearchConfig:
    """Configuration for one research service / workflow instance."""

    provider: str | None = None  # 'openai', 'gemini' or None (auto-detect)
    planner_model: str | None = None
    writer_model: str | None = None
    temperature: float = 0.0
    plan_max_tokens: int = 600
    write_max_tokens: int = 800
    sources: tuple[str, ...] = ("wikipedia",)
    max_query_chars: int = 100
    generate_queries: bool = False
    max_generated_queries: int = 3
    # Sections researched at once. 1 keeps the run sequential.
    max_concurrency: int = 1
    # In-flight knowledge-source and synthesis calls per run.
    max_inflight_calls: int = 4
    relevance_threshold: float = 0.75
    recursion_limit: int = 100
    store_dir: str | None = None
    poll_interval: float = 2.0
    http_timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    max_attempts: int = 1

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "ResearchConfig":
        """Build a config from ``DRW_*`` variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(f"DRW_{f.name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            default = f.default
            if f.name == "sources":
                values[f.name] = _env_list(raw)
            elif isinstance(default, bool):
                values[f.name] = _env_bool(raw)
            elif isinstance(default, int):
                values[f.name] = int(raw)
            elif isinstance(default, float):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        config.validate()
        return config

    def with_overrides(self, **overrides: Any) -> "ResearchConfig":
        config = replace(self, **{k: v for k, v in overrides.items() if v is not None})
        config.validate()
        return config

    def validate(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.max_inflight_calls < 1:
            raise ValueError("max_inflight_calls must be >= 1")
        if self.max_query_chars < 1:
            raise ValueError("max_query_chars must be >= 1")
        if not 0 < self.relevance_threshold <= 1:
            raise ValueError("relevance_threshold must be in (0, 1]")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
