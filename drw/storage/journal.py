"""Per-run step journal: the durable checkpoint log of a workflow run.

Each completed step is recorded once under its structured id. Re-driving a
run replays recorded results instead of executing the step again, so a run
resumes from the first step with no entry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from .store import DurableStore

logger = logging.getLogger(__name__)


class StepPhase(str, Enum):
    """Checkpointed phases of a run."""

    PARAMS = "params"
    PLAN = "plan"
    OUTLINE = "outline"
    SECTION = "section"
    COMPILE = "compile"


@dataclass(frozen=True)
class StepId:
    """Structured step identifier: a phase plus an index for repeated phases."""

    phase: StepPhase
    index: int | None = None

    @classmethod
    def plan(cls) -> "StepId":
        return cls(StepPhase.PLAN)

    @classmethod
    def outline(cls) -> "StepId":
        return cls(StepPhase.OUTLINE)

    @classmethod
    def section(cls, index: int) -> "StepId":
        return cls(StepPhase.SECTION, index)

    @classmethod
    def compile(cls) -> "StepId":
        return cls(StepPhase.COMPILE)

    @property
    def key(self) -> str:
        if self.index is None:
            return self.phase.value
        return f"{self.phase.value}-{self.index}"

    def __str__(self) -> str:
        return self.key


_PARAMS = StepId(StepPhase.PARAMS)


class StepJournal:
    """Write-once checkpoint log for one run, kept in a DurableStore."""

    def __init__(self, store: DurableStore, run_id: str):
        self.store = store
        self.run_id = run_id
        self._lock = asyncio.Lock()

    def _key(self, step: StepId) -> str:
        return f"runs/{self.run_id}/steps/{step.key}"

    async def _entry(self, step: StepId) -> dict[str, Any] | None:
        return await self.store.get(self._key(step))

    async def has(self, step: StepId) -> bool:
        return await self._entry(step) is not None

    async def get(self, step: StepId, default: Any = None) -> Any:
        entry = await self._entry(step)
        return default if entry is None else entry.get("result")

    async def record(self, step: StepId, result: Any) -> Any:
        """Record a step result. An existing entry wins and is returned unchanged."""
        async with self._lock:
            existing = await self._entry(step)
            if existing is not None:
                logger.debug("[%s] step %s already recorded; keeping first result", self.run_id, step)
                return existing.get("result")
            await self.store.put(
                self._key(step),
                {
                    "run_id": self.run_id,
                    "step": step.key,
                    "result": result,
                    "recorded_at": datetime.now(timezone.utc).isoformat(),
                },
            )
            return result

    async def do(self, step: StepId, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Replay the recorded result of `step`, or run `fn` and record what it returns."""
        entry = await self._entry(step)
        if entry is not None:
            logger.info("[%s] replaying checkpoint %s", self.run_id, step)
            return entry.get("result")
        result = await fn()
        return await self.record(step, result)

    async def record_params(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self.record(_PARAMS, params)

    async def params(self) -> dict[str, Any] | None:
        return await self.get(_PARAMS)
