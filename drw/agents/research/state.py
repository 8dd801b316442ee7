"""State definitions for the research workflow graph.

Values are JSON-shaped (model dumps) so they match what the step journal
stores and replays.
"""

from __future__ import annotations

import operator
from enum import Enum
from typing import Annotated, Any, TypedDict


class WorkflowPhase(str, Enum):
    """States of a run: planning -> validating -> researching -> compiling -> done.

    `errored` is absorbing and reachable from any other state.
    """

    PLANNING = "planning"
    VALIDATING = "validating"
    RESEARCHING = "researching"
    COMPILING = "compiling"
    DONE = "done"
    ERRORED = "errored"


class ResearchWorkflowState(TypedDict):
    """State for the research workflow graph.

    Attributes:
        query: The submitted research question.
        session_id: Run id; also the artifact key.
        phase: Current WorkflowPhase value.
        plan: Parsed plan step output (PlanResult dump).
        outline: Authoritative ordered sections (OutlineSection dumps).
        used_fallback: Whether the outline is the deterministic fallback.
        section_index: Index of the first section not yet researched.
        section_results: SectionResult dumps in outline order.
        artifact: The compiled ReportArtifact dump.
    """

    query: str
    session_id: str
    phase: str
    plan: dict[str, Any] | None
    outline: list[dict[str, Any]]
    used_fallback: bool
    section_index: int
    section_results: Annotated[list[dict[str, Any]], operator.add]
    artifact: dict[str, Any] | None


def initial_state(query: str, session_id: str) -> ResearchWorkflowState:
    return ResearchWorkflowState(
        query=query,
        session_id=session_id,
        phase=WorkflowPhase.PLANNING.value,
        plan=None,
        outline=[],
        used_fallback=False,
        section_index=0,
        section_results=[],
        artifact=None,
    )
