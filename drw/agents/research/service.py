"""Run service: submit a query, get a session id back, poll for the artifact.

`LocalWorkflowRunner` is the in-process durable-execution substrate. Each run
is an asyncio task; crashed runs are retried from their journal, so recorded
steps are not executed twice.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from drw.config import ResearchConfig
from drw.errors import DuplicateRunError
from drw.storage import DurableStore

from .agent import ResearchWorkflow, new_session_id
from .contracts import ReportArtifact, ResearchQuery

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETE = "complete"
    ERRORED = "errored"


class WorkflowHandle(Protocol):
    """Creates and tracks runs by id."""

    async def create(self, run_id: str, params: dict[str, Any]) -> None: ...

    async def resume(self, run_id: str) -> None: ...

    async def wait(self, run_id: str) -> RunStatus: ...

    def status(self, run_id: str) -> RunStatus | None: ...


class LocalWorkflowRunner:
    """Runs workflows as asyncio tasks in the current event loop."""

    def __init__(self, workflow: ResearchWorkflow, max_attempts: int = 1):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.workflow = workflow
        self.max_attempts = max_attempts
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._status: dict[str, RunStatus] = {}
        self._errors: dict[str, BaseException] = {}

    async def create(self, run_id: str, params: dict[str, Any]) -> None:
        """Start a new run. Ids are unique across the store, not just this runner."""
        if run_id in self._status or await self.workflow.journal_for(run_id).params() is not None:
            raise DuplicateRunError(f"Run {run_id} already exists")
        query = params["query"]
        self._start(run_id, lambda: self.workflow.arun(query, run_id))

    async def resume(self, run_id: str) -> None:
        """Re-drive a recorded run; a no-op while it is still active."""
        if self._status.get(run_id) in (RunStatus.QUEUED, RunStatus.RUNNING):
            return
        if await self.workflow.journal_for(run_id).params() is None:
            raise KeyError(f"No run recorded for session {run_id}")
        self._start(run_id, lambda: self.workflow.aresume(run_id))

    async def wait(self, run_id: str) -> RunStatus:
        """Wait for the run's current task; a finished run returns its status at once."""
        task = self._tasks.get(run_id)
        if task is None:
            status = self._status.get(run_id)
            if status is None:
                raise KeyError(f"Unknown run {run_id}")
            return status
        await asyncio.wait({task})
        return self._status[run_id]

    def status(self, run_id: str) -> RunStatus | None:
        return self._status.get(run_id)

    def error(self, run_id: str) -> BaseException | None:
        return self._errors.get(run_id)

    def cancel(self, run_id: str) -> bool:
        """Cancel the run's active task. The run ends errored and can be resumed."""
        task = self._tasks.get(run_id)
        if task is None or task.done():
            return False
        return task.cancel()

    def forget(self, run_id: str) -> None:
        """Drop what the runner remembers about a finished run."""
        if self._status.get(run_id) in (RunStatus.QUEUED, RunStatus.RUNNING):
            raise RuntimeError(f"Run {run_id} is still active")
        self._status.pop(run_id, None)
        self._errors.pop(run_id, None)

    def _start(self, run_id: str, drive: Callable[[], Awaitable[ReportArtifact]]) -> None:
        self._status[run_id] = RunStatus.QUEUED
        self._errors.pop(run_id, None)
        task = asyncio.create_task(self._drive(run_id, drive), name=f"research-{run_id}")
        self._tasks[run_id] = task
        task.add_done_callback(lambda t: self._release(run_id, t))

    def _release(self, run_id: str, task: asyncio.Task[None]) -> None:
        # A resumed run may already have a newer task under the same id.
        if self._tasks.get(run_id) is not task:
            return
        del self._tasks[run_id]
        if self._status.get(run_id) in (RunStatus.QUEUED, RunStatus.RUNNING):
            # Cancelled before the run started.
            self._status[run_id] = RunStatus.ERRORED
            self._errors.setdefault(run_id, asyncio.CancelledError())

    async def _drive(self, run_id: str, drive: Callable[[], Awaitable[ReportArtifact]]) -> None:
        self._status[run_id] = RunStatus.RUNNING
        try:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    await drive()
                except Exception as e:
                    self._errors[run_id] = e
                    logger.warning("[%s] Attempt %d/%d failed: %s", run_id, attempt, self.max_attempts, e)
                    continue
                self._errors.pop(run_id, None)
                self._status[run_id] = RunStatus.COMPLETE
                return
            self._status[run_id] = RunStatus.ERRORED
        except asyncio.CancelledError as e:
            logger.warning("[%s] Run cancelled", run_id)
            self._errors[run_id] = e
            self._status[run_id] = RunStatus.ERRORED
            raise


class ResearchService:
    """Submit/poll front end over a workflow and its store."""

    def __init__(
        self,
        workflow: ResearchWorkflow,
        store: DurableStore | None = None,
        runner: LocalWorkflowRunner | None = None,
        config: ResearchConfig | None = None,
    ):
        self.workflow = workflow
        self.store = store or workflow.store
        self.config = config or workflow.config
        self.runner = runner or LocalWorkflowRunner(workflow, max_attempts=self.config.max_attempts)

    async def submit(self, query: str) -> str:
        """Create a run and return its session id without waiting for it."""
        if not query or not query.strip():
            raise ValueError("Query is required")
        request = ResearchQuery(query=query, session_id=new_session_id())
        await self.runner.create(request.session_id, request.model_dump())
        logger.info("[%s] Research started for: %s", request.session_id, query)
        return request.session_id

    async def resume(self, session_id: str) -> None:
        await self.runner.resume(session_id)

    def status(self, session_id: str) -> RunStatus | None:
        return self.runner.status(session_id)

    async def poll(self, session_id: str) -> ReportArtifact | None:
        """The stored artifact for `session_id`, or None while it is not ready."""
        data = await self.store.get(session_id)
        if data is None:
            return None
        return ReportArtifact.model_validate(data)

    async def wait_for(
        self,
        session_id: str,
        interval: float | None = None,
        timeout: float | None = None,
    ) -> ReportArtifact:
        """Poll until the run's artifact is final.

        An artifact is final once the runner no longer has the run queued or
        running (an error artifact may be overwritten by a retry).

        Raises:
            TimeoutError: if `timeout` seconds pass first.
        """
        interval = self.config.poll_interval if interval is None else interval
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while True:
            status = self.runner.status(session_id)
            artifact = await self.poll(session_id)
            if artifact is not None and status not in (RunStatus.QUEUED, RunStatus.RUNNING):
                return artifact
            if artifact is None and status is RunStatus.ERRORED:
                error = self.runner.error(session_id)
                if error is None or isinstance(error, asyncio.CancelledError):
                    raise RuntimeError(f"Run {session_id} errored without an artifact") from error
                raise error
            if deadline is not None and loop.time() >= deadline:
                raise TimeoutError(f"Report for {session_id} not ready after {timeout}s")
            await asyncio.sleep(interval)
