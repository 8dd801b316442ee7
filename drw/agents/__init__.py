"""Agent implementations."""

from drw.agents.research import (
    ResearchService,
    ResearchWorkflow,
    ResearchWorkflowState,
    SectionProcessor,
    create_research_workflow_graph,
)

__all__ = [
    "ResearchService",
    "ResearchWorkflow",
    "ResearchWorkflowState",
    "SectionProcessor",
    "create_research_workflow_graph",
]
