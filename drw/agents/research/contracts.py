"""Pydantic contracts for the research workflow.

All models are frozen: an outline, a section result or an artifact is never
mutated once produced.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ResearchQuery(_Frozen):
    """A submitted question plus the session id every artifact refers to."""

    query: str
    session_id: str


class OutlineSection(_Frozen):
    """A single planned section of the final report."""

    title: str
    focus: str = Field("", description="What this section should cover")


class SourceRecord(_Frozen):
    """One best match returned by a knowledge source."""

    title: str
    url: str = ""
    extract: str | None = None

    def ref(self) -> "SourceRef":
        return SourceRef(title=self.title, url=self.url)


class SourceRef(_Frozen):
    """The `{title, url}` citation carried by section results and artifacts."""

    title: str
    url: str = ""


class SectionResult(_Frozen):
    """Written markdown for one outline section and the sources behind it."""

    title: str
    content: str
    sources: list[SourceRef] = Field(default_factory=list)


class ArtifactStatus(str, Enum):
    COMPLETE = "complete"
    ERROR = "error"


class ReportArtifact(_Frozen):
    """Terminal output of one run, stored under the session id."""

    query: str
    answer: str
    sources: list[SourceRef] = Field(default_factory=list)
    status: Literal["complete", "error"] = ArtifactStatus.COMPLETE.value
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status == ArtifactStatus.ERROR.value

    @classmethod
    def failed(cls, query: str, message: str, error: BaseException | str) -> "ReportArtifact":
        """Build the error-shaped artifact pollers receive when a run fails."""
        return cls(
            query=query,
            answer=f"# {query}\n\n{message}: {error}",
            sources=[],
            status=ArtifactStatus.ERROR.value,
            error=str(error),
        )


class PlanResult(_Frozen):
    """Parsed output of the plan step."""

    sections: list[OutlineSection] = Field(default_factory=list)
    raw: Any = None


def dedupe_sources(sources: Iterable[SourceRef]) -> list[SourceRef]:
    """Deduplicate by url; the first occurrence wins and order is kept."""
    seen: set[str] = set()
    out: list[SourceRef] = []
    for src in sources:
        if src.url in seen:
            continue
        seen.add(src.url)
        out.append(src)
    return out
