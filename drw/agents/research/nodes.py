"""Node implementations for the research workflow.

Every node wraps its work in a journal step, so re-driving a run replays
recorded results and only executes steps that never completed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from langchain_core.language_models import BaseChatModel

from drw.errors import PlanningFailed, StorageWriteFailure
from drw.storage import DurableStore, StepId, StepJournal

from .contracts import OutlineSection, PlanResult, ReportArtifact, SectionResult, dedupe_sources
from .prompts import planner_prompt
from .section import SectionProcessor
from .shared.extract import extract_json
from .shared.llm import generate_text
from .state import ResearchWorkflowState, WorkflowPhase
from .validator import DEFAULT_RELEVANCE_THRESHOLD, QueryClass, classify_query, validate_outline

logger = logging.getLogger(__name__)


def coerce_sections(parsed: Any) -> list[OutlineSection]:
    """Read `{"sections": [...]}` (or a bare list) into OutlineSections, skipping junk entries."""
    items = parsed.get("sections") if isinstance(parsed, dict) else parsed
    if not isinstance(items, list):
        return []

    sections: list[OutlineSection] = []
    for item in items:
        if isinstance(item, str) and item.strip():
            sections.append(OutlineSection(title=item.strip(), focus=""))
            continue
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            continue
        focus = item.get("focus")
        sections.append(
            OutlineSection(title=title.strip(), focus=focus.strip() if isinstance(focus, str) else "")
        )
    return sections


def assemble_report(query: str, results: Sequence[SectionResult]) -> ReportArtifact:
    """Concatenate section content in outline order under the query heading.

    Sources are deduplicated by url, first occurrence wins.
    """
    parts = [f"# {query}"]
    parts.extend(r.content.strip() for r in results if r.content and r.content.strip())
    sources = dedupe_sources(src for r in results for src in r.sources)
    return ReportArtifact(query=query, answer="\n\n".join(parts) + "\n", sources=sources)


async def write_error_artifact(
    store: DurableStore,
    session_id: str,
    query: str,
    message: str,
    error: BaseException | str,
) -> bool:
    """Best-effort write of an error-shaped artifact so pollers see a terminal result."""
    try:
        await store.put(session_id, ReportArtifact.failed(query, message, error).model_dump(mode="json"))
    except Exception:
        logger.exception("[%s] Failed to write error artifact", session_id)
        return False
    return True


async def plan_research(
    state: ResearchWorkflowState,
    llm: BaseChatModel,
    journal: StepJournal,
    query_class: QueryClass | None = None,
) -> dict[str, Any]:
    """Run the planner once and parse its outline."""
    query = state["query"]
    query_class = query_class or classify_query(query)

    async def _plan() -> dict[str, Any]:
        logger.info("[%s] Planning research for: %s", state["session_id"], query)
        try:
            text = await generate_text(llm, planner_prompt(query, query_class), "plan_research")
            logger.debug("[%s] Raw plan response: %s", state["session_id"], text)
            parsed = extract_json(text)
        except Exception as e:
            raise PlanningFailed(f"Planning failed: {e}") from e
        return PlanResult(sections=coerce_sections(parsed), raw=parsed).model_dump(mode="json")

    plan = await journal.do(StepId.plan(), _plan)
    logger.info("[%s] Plan has %d sections", state["session_id"], len(plan.get("sections") or []))
    return {"plan": plan, "phase": WorkflowPhase.VALIDATING.value}


async def validate_plan(
    state: ResearchWorkflowState,
    journal: StepJournal,
    query_class: QueryClass | None = None,
    threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
) -> dict[str, Any]:
    """Fix the authoritative outline: the planned one, or the fallback if it drifted."""
    query = state["query"]
    plan = state.get("plan") or {}

    async def _validate() -> dict[str, Any]:
        sections = [OutlineSection.model_validate(s) for s in plan.get("sections") or []]
        validated = validate_outline(query, sections, query_class=query_class, threshold=threshold)
        return {
            "sections": [s.model_dump(mode="json") for s in validated.sections],
            "used_fallback": validated.used_fallback,
            "relevant": validated.report.relevant,
            "total": validated.report.total,
        }

    outline = await journal.do(StepId.outline(), _validate)
    logger.info(
        "[%s] Outline: %s%s",
        state["session_id"],
        ", ".join(s["title"] for s in outline["sections"]),
        " (fallback)" if outline["used_fallback"] else "",
    )
    return {
        "outline": outline["sections"],
        "used_fallback": outline["used_fallback"],
        "section_index": 0,
        "phase": WorkflowPhase.RESEARCHING.value,
    }


async def research_sections(
    state: ResearchWorkflowState,
    processor: SectionProcessor,
    journal: StepJournal,
    max_concurrency: int = 1,
    limiter: asyncio.Semaphore | None = None,
) -> dict[str, Any]:
    """Research every pending section in batches of up to `max_concurrency`.

    Each section is its own journal step, so the batches run inside one graph
    step however long the outline is. Results are returned in outline order
    whatever order they finish in.
    """
    outline = [OutlineSection.model_validate(s) for s in state.get("outline") or []]
    start = int(state.get("section_index") or 0)
    batch_size = max(1, max_concurrency)
    session_id = state["session_id"]

    async def _section(idx: int) -> dict[str, Any]:
        section = outline[idx]

        async def _work() -> dict[str, Any]:
            logger.info("[%s] Processing section %d/%d: %s", session_id, idx + 1, len(outline), section.title)
            result = await processor.process(section, limiter=limiter)
            return result.model_dump(mode="json")

        return await journal.do(StepId.section(idx), _work)

    results: list[dict[str, Any]] = []
    for batch_start in range(start, len(outline), batch_size):
        batch = range(batch_start, min(batch_start + batch_size, len(outline)))
        outcomes = await asyncio.gather(*(_section(i) for i in batch), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results.extend(outcomes)

    return {
        "section_results": results,
        "section_index": len(outline),
        "phase": WorkflowPhase.COMPILING.value,
    }


async def compile_report(state: ResearchWorkflowState, journal: StepJournal, store: DurableStore) -> dict[str, Any]:
    """Assemble the report and write it under the session key.

    The report is final once it is stored. If only the compile checkpoint then
    fails to record, the run still completes; a resume rewrites the same report.

    Raises:
        StorageWriteFailure: if the write fails. The error-shaped artifact write
            has already been attempted when this is raised.
    """
    query = state["query"]
    session_id = state["session_id"]
    results = [SectionResult.model_validate(r) for r in state.get("section_results") or []]
    artifact = assemble_report(query, results)
    stored = False

    async def _compile() -> dict[str, Any]:
        nonlocal stored
        logger.info("[%s] Compiling final report", session_id)
        try:
            await store.put(session_id, artifact.model_dump(mode="json"))
        except Exception as e:
            logger.exception("[%s] Error writing compiled report", session_id)
            await write_error_artifact(store, session_id, query, "Error compiling report", e)
            raise StorageWriteFailure(f"Failed to write report for {session_id}: {e}") from e
        stored = True
        logger.info("[%s] Report compiled and saved", session_id)
        return {"sections": len(results), "sources": len(artifact.sources)}

    try:
        await journal.do(StepId.compile(), _compile)
    except StorageWriteFailure:
        raise
    except Exception:
        if not stored:
            raise
        logger.exception("[%s] Report stored but compile checkpoint not recorded", session_id)
    return {"artifact": artifact.model_dump(mode="json"), "phase": WorkflowPhase.DONE.value}
