"""LangGraph wiring for the research workflow.

Only graph construction lives here; node implementations are in `nodes.py`.
"""

from __future__ import annotations

import asyncio
from typing import Any, cast

from langchain_core.language_models import BaseChatModel
from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from drw.storage import DurableStore, StepJournal

from .nodes import compile_report, plan_research, research_sections, validate_plan
from .section import SectionProcessor
from .state import ResearchWorkflowState
from .validator import DEFAULT_RELEVANCE_THRESHOLD, QueryClass


def create_research_workflow_graph(
    planner_llm: BaseChatModel,
    processor: SectionProcessor,
    journal: StepJournal,
    store: DurableStore,
    query_class: QueryClass | None = None,
    max_concurrency: int = 1,
    limiter: asyncio.Semaphore | None = None,
    relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
) -> CompiledStateGraph:
    """Create the graph for one run.

    Flow:
    - plan_research: planner call + outline parsing
    - validate_plan: relevance check, fallback outline if needed
    - research_sections: every pending section, batched by max_concurrency
    - compile_report: assemble and store the artifact
    - END
    """
    graph = StateGraph(ResearchWorkflowState)

    async def _plan(state: Any) -> dict[str, Any]:
        return await plan_research(cast(ResearchWorkflowState, state), planner_llm, journal, query_class)

    async def _validate(state: Any) -> dict[str, Any]:
        return await validate_plan(
            cast(ResearchWorkflowState, state), journal, query_class=query_class, threshold=relevance_threshold
        )

    async def _research(state: Any) -> dict[str, Any]:
        return await research_sections(
            cast(ResearchWorkflowState, state),
            processor,
            journal,
            max_concurrency=max_concurrency,
            limiter=limiter,
        )

    async def _compile(state: Any) -> dict[str, Any]:
        return await compile_report(cast(ResearchWorkflowState, state), journal, store)

    graph.add_node("plan_research", _plan)
    graph.add_node("validate_plan", _validate)
    graph.add_node("research_sections", _research)
    graph.add_node("compile_report", _compile)

    graph.set_entry_point("plan_research")
    graph.add_edge("plan_research", "validate_plan")
    graph.add_edge("validate_plan", "research_sections")
    graph.add_edge("research_sections", "compile_report")
    graph.add_edge("compile_report", END)

    return graph.compile()
