"""Durable research workflow: plan, validate, research sections, compile."""

from drw.agents.research.agent import ResearchWorkflow, new_session_id
from drw.agents.research.contracts import (
    OutlineSection,
    ReportArtifact,
    ResearchQuery,
    SectionResult,
    SourceRecord,
    SourceRef,
)
from drw.agents.research.graph import create_research_workflow_graph
from drw.agents.research.section import SectionProcessor
from drw.agents.research.service import LocalWorkflowRunner, ResearchService, RunStatus, WorkflowHandle
from drw.agents.research.state import ResearchWorkflowState, WorkflowPhase
from drw.agents.research.validator import classify_query, validate_outline

__all__ = [
    "ResearchWorkflow",
    "new_session_id",
    "create_research_workflow_graph",
    "ResearchWorkflowState",
    "WorkflowPhase",
    # Contracts
    "OutlineSection",
    "ReportArtifact",
    "ResearchQuery",
    "SectionResult",
    "SourceRecord",
    "SourceRef",
    # Steps
    "SectionProcessor",
    "classify_query",
    "validate_outline",
    # Service
    "LocalWorkflowRunner",
    "ResearchService",
    "RunStatus",
    "WorkflowHandle",
]
