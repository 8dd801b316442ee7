"""Research workflow wrapper class.

`ResearchWorkflow` owns the models, the section processor and the durable
store. Each call to `arun` / `aresume` builds the graph for one run around
that run's step journal and drives it to completion.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Sequence

from langchain_core.language_models import BaseChatModel

from drw.config import ResearchConfig
from drw.errors import StorageWriteFailure
from drw.factory import DefaultLLMFactory
from drw.storage import DurableStore, StepJournal

from .contracts import ReportArtifact, ResearchQuery
from .graph import create_research_workflow_graph
from .nodes import write_error_artifact
from .section import SectionProcessor
from .state import WorkflowPhase, initial_state
from .validator import classify_query

if TYPE_CHECKING:
    from drw.tools.search import KnowledgeSource

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return uuid.uuid4().hex


class ResearchWorkflow:
    """Durable plan -> validate -> research -> compile pipeline.

    Example:
        ```python
        from drw.agents.research import ResearchWorkflow
        from drw.factory import DefaultLLMFactory
        from drw.storage import FileStore

        workflow = ResearchWorkflow(store=FileStore(".drw"), llm_factory=DefaultLLMFactory())
        artifact = workflow.run("Tea or coffee?")
        print(artifact.answer)
        ```
    """

    def __init__(
        self,
        store: DurableStore,
        llm_factory: DefaultLLMFactory | None = None,
        llm: BaseChatModel | None = None,
        planner_llm: BaseChatModel | None = None,
        writer_llm: BaseChatModel | None = None,
        processor: SectionProcessor | None = None,
        sources: Sequence["KnowledgeSource"] | None = None,
        config: ResearchConfig | None = None,
    ):
        """Initialize the workflow.

        Args:
            store: Durable store for the step journal and the final artifact.
            llm_factory: Factory for creating the planner and writer models.
            llm: Model used for both planning and writing when no factory is given.
            planner_llm: Overrides `llm` for the plan step.
            writer_llm: Overrides `llm` for section writing.
            processor: Prebuilt section processor (sources and writer are then ignored).
            sources: Knowledge sources; defaults to those named in `config.sources`.
            config: Runtime configuration.
        """
        self.store = store
        self.config = config or ResearchConfig()

        if llm_factory:
            self.planner_llm = llm_factory.get_llm(
                name="research-planner",
                provider=self.config.provider,
                model=self.config.planner_model,
                temperature=self.config.temperature,
                max_tokens=self.config.plan_max_tokens,
            )
            self.writer_llm = llm_factory.get_llm(
                name="section-writer",
                provider=self.config.provider,
                model=self.config.writer_model,
                temperature=self.config.temperature,
                max_tokens=self.config.write_max_tokens,
            )
        else:
            self.planner_llm = planner_llm or llm
            self.writer_llm = writer_llm or llm

        if not self.planner_llm:
            raise ValueError("Either llm_factory or llm must be provided")

        if processor is None:
            if not self.writer_llm:
                raise ValueError("A writer model is required when no processor is given")
            if sources is None:
                # Lazy import avoids a cycle: drw.tools imports the research contracts.
                from drw.tools.search import build_sources

                sources = build_sources(self.config.sources, self.config)
            processor = SectionProcessor(
                self.writer_llm,
                sources=sources,
                max_query_chars=self.config.max_query_chars,
                generate_queries=self.config.generate_queries,
                max_generated_queries=self.config.max_generated_queries,
            )
        self.processor = processor

    def journal_for(self, session_id: str) -> StepJournal:
        return StepJournal(self.store, session_id)

    async def arun(self, query: str, session_id: str | None = None) -> ReportArtifact:
        """Start (or re-drive) the run `session_id` for `query`.

        The first recorded query wins: re-driving an existing run with a
        different query continues the original one.

        Raises:
            Any fatal workflow error, after the error-shaped artifact was written.
        """
        session_id = session_id or new_session_id()
        params = await self.journal_for(session_id).record_params(
            ResearchQuery(query=query, session_id=session_id).model_dump()
        )
        return await self._drive(session_id, params["query"])

    async def aresume(self, session_id: str) -> ReportArtifact:
        """Re-drive a recorded run from its first missing checkpoint."""
        params = await self.journal_for(session_id).params()
        if params is None:
            raise KeyError(f"No run recorded for session {session_id}")
        return await self._drive(session_id, params["query"])

    def run(self, query: str, session_id: str | None = None) -> ReportArtifact:
        return asyncio.run(self.arun(query, session_id))

    def resume(self, session_id: str) -> ReportArtifact:
        return asyncio.run(self.aresume(session_id))

    async def _drive(self, session_id: str, query: str) -> ReportArtifact:
        limiter = asyncio.Semaphore(self.config.max_inflight_calls)
        graph = create_research_workflow_graph(
            planner_llm=self.planner_llm,
            processor=self.processor,
            journal=self.journal_for(session_id),
            store=self.store,
            query_class=classify_query(query),
            max_concurrency=self.config.max_concurrency,
            limiter=limiter,
            relevance_threshold=self.config.relevance_threshold,
        )
        config = {"recursion_limit": self.config.recursion_limit}

        logger.info("[%s] Starting research workflow for: %s", session_id, query)
        try:
            final_state = await graph.ainvoke(initial_state(query, session_id), config=config)
        except StorageWriteFailure:
            logger.error("[%s] Workflow %s: report could not be stored", session_id, WorkflowPhase.ERRORED.value)
            raise
        except asyncio.CancelledError:
            logger.warning("[%s] Workflow %s: run cancelled", session_id, WorkflowPhase.ERRORED.value)
            await write_error_artifact(self.store, session_id, query, "Workflow cancelled", "run was cancelled")
            raise
        except Exception as e:
            logger.exception("[%s] Workflow %s", session_id, WorkflowPhase.ERRORED.value)
            await write_error_artifact(self.store, session_id, query, "Workflow failed with error", e)
            raise

        logger.info("[%s] Workflow %s", session_id, final_state["phase"])
        return ReportArtifact.model_validate(final_state["artifact"])
