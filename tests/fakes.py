"""Fakes shared by the research workflow tests."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from drw.agents.research.contracts import OutlineSection, SectionResult, SourceRecord, SourceRef

_TITLE_RE = re.compile(r"^Section Title: (.+)$", re.MULTILINE)

TEA_OR_COFFEE_PLAN = {
    "sections": [
        {"title": "Introduction: Tea vs Coffee", "focus": "Overview comparing both drinks"},
        {"title": "About Tea", "focus": "Tea varieties and caffeine"},
        {"title": "About Coffee", "focus": "Coffee roasts and caffeine"},
        {"title": "Comparison: Tea vs Coffee", "focus": "Which suits which situation"},
    ]
}


def make_llm(*replies: Any) -> MagicMock:
    """Fake chat model whose `ainvoke` returns `replies` in order (exceptions are raised)."""
    llm = MagicMock()
    llm.ainvoke = AsyncMock(
        side_effect=[MagicMock(content=r) if isinstance(r, (str, list)) else r for r in replies]
    )
    return llm


def echo_writer() -> MagicMock:
    """Fake writer that answers every section prompt with on-topic markdown."""

    def _reply(messages: Any, **kwargs: Any) -> MagicMock:
        title = _TITLE_RE.search(messages[0].content).group(1)
        return MagicMock(content=f"## {title}\n\nNotes on {title}.")

    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=_reply)
    return llm


def prompt_of(llm: MagicMock, call: int = 0) -> str:
    return llm.ainvoke.call_args_list[call].args[0][0].content


class FakeSource:
    """Knowledge source returning a fixed record (or raising)."""

    name = "fake"

    def __init__(self, record: SourceRecord | None = None, error: Exception | None = None):
        self.record = record
        self.error = error
        self.terms: list[str] = []

    async def lookup(self, term: str) -> SourceRecord | None:
        self.terms.append(term)
        if self.error:
            raise self.error
        return self.record


class WorkerCrash(Exception):
    """Simulated crash of the process driving a run."""


class ScriptedProcessor:
    """Section processor double: records calls, can crash on a title or block on an event."""

    def __init__(
        self,
        fail_on: str | None = None,
        gate: asyncio.Event | None = None,
        delays: dict[str, float] | None = None,
    ):
        self.fail_on = fail_on
        self.gate = gate
        self.delays = delays or {}
        self.calls: list[str] = []

    async def process(self, section: OutlineSection, limiter: Any = None) -> SectionResult:
        self.calls.append(section.title)
        if self.gate is not None:
            await self.gate.wait()
        if section.title in self.delays:
            await asyncio.sleep(self.delays[section.title])
        if section.title == self.fail_on:
            self.fail_on = None
            raise WorkerCrash(f"worker died on {section.title}")
        return SectionResult(
            title=section.title,
            content=f"## {section.title}\n\nBody of {section.title}.",
            sources=[SourceRef(title="Shared", url="https://example.com/shared")],
        )


def plan_reply() -> str:
    return "Here is the outline:\n```json\n" + json.dumps(TEA_OR_COFFEE_PLAN, indent=2) + "\n```"
