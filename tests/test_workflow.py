"""End-to-end tests for the research workflow graph and its checkpointing."""

import asyncio
import json

import pytest

from drw.agents.research import ResearchWorkflow
from drw.agents.research.contracts import SectionResult, SourceRecord, SourceRef
from drw.agents.research.nodes import assemble_report, coerce_sections
from drw.config import ResearchConfig
from drw.errors import EmptyPlan, PlanningFailed, StorageWriteFailure
from drw.storage import InMemoryStore, StepId

from fakes import TEA_OR_COFFEE_PLAN, FakeSource, ScriptedProcessor, WorkerCrash, echo_writer, make_llm, plan_reply

TITLES = [s["title"] for s in TEA_OR_COFFEE_PLAN["sections"]]


class _CheckpointFailingStore(InMemoryStore):
    """Fails every write of one checkpoint key."""

    def __init__(self, key: str):
        super().__init__()
        self.key = key

    async def put(self, key, value):
        if key == self.key:
            raise OSError("checkpoint volume unavailable")
        await super().put(key, value)


class _FlakyArtifactStore(InMemoryStore):
    """Fails the first `failures` writes to artifact keys (not checkpoints)."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.artifact_puts = 0

    async def put(self, key, value):
        if not key.startswith("runs/"):
            self.artifact_puts += 1
            if self.failures:
                self.failures -= 1
                raise OSError("disk full")
        await super().put(key, value)


def test_full_run_writes_ordered_report_with_deduped_sources():
    store = InMemoryStore()
    source = FakeSource(SourceRecord(title="Coffee", url="https://en.wikipedia.org/wiki/Coffee", extract="Brewed."))
    workflow = ResearchWorkflow(
        store=store,
        planner_llm=make_llm(plan_reply()),
        writer_llm=echo_writer(),
        sources=[source],
    )

    artifact = workflow.run("Tea or coffee?", session_id="s1")

    assert artifact.status == "complete"
    assert artifact.answer.startswith("# Tea or coffee?\n\n## Introduction: Tea vs Coffee")
    positions = [artifact.answer.index(f"## {t}\n") for t in TITLES]
    assert positions == sorted(positions)
    assert artifact.sources == [SourceRef(title="Coffee", url="https://en.wikipedia.org/wiki/Coffee")]
    assert asyncio.run(store.get("s1")) == artifact.model_dump(mode="json")


def test_off_topic_plan_uses_fallback_outline():
    plan = json.dumps({"sections": [{"title": "Roman history"}, {"title": "Jazz"}, {"title": "Knitting"}]})
    workflow = ResearchWorkflow(
        store=InMemoryStore(), planner_llm=make_llm(plan), processor=ScriptedProcessor()
    )

    artifact = workflow.run("Tea or coffee?")

    assert "## About Tea" in artifact.answer
    assert "## About coffee" in artifact.answer
    assert "Roman history" not in artifact.answer


def test_planning_failure_writes_error_artifact():
    store = InMemoryStore()
    workflow = ResearchWorkflow(store=store, planner_llm=make_llm("I cannot help with that"), processor=ScriptedProcessor())

    with pytest.raises(PlanningFailed):
        workflow.run("Tea or coffee?", session_id="s1")

    stored = asyncio.run(store.get("s1"))
    assert stored["status"] == "error"
    assert stored["answer"].startswith("# Tea or coffee?\n\nWorkflow failed with error: Planning failed:")
    assert stored["sources"] == []


def test_empty_plan_is_fatal():
    store = InMemoryStore()
    workflow = ResearchWorkflow(store=store, planner_llm=make_llm('{"sections": []}'), processor=ScriptedProcessor())

    with pytest.raises(EmptyPlan):
        workflow.run("Tea or coffee?", session_id="s1")
    assert asyncio.run(store.get("s1"))["status"] == "error"


def test_resume_after_crash_skips_recorded_steps():
    store = InMemoryStore()
    planner = make_llm(plan_reply())
    crashing = ScriptedProcessor(fail_on=TITLES[1])
    workflow = ResearchWorkflow(store=store, planner_llm=planner, processor=crashing)

    with pytest.raises(WorkerCrash):
        workflow.run("Tea or coffee?", session_id="s1")
    assert crashing.calls == TITLES[:2]

    workflow.processor = ScriptedProcessor()
    artifact = workflow.resume("s1")

    assert workflow.processor.calls == TITLES[1:]
    assert planner.ainvoke.call_count == 1
    assert artifact.status == "complete"
    assert [line for line in artifact.answer.splitlines() if line.startswith("## ")] == [f"## {t}" for t in TITLES]
    assert asyncio.run(store.get("s1"))["status"] == "complete"


def test_completed_run_replays_without_new_calls():
    store = InMemoryStore()
    planner = make_llm(plan_reply())
    workflow = ResearchWorkflow(store=store, planner_llm=planner, processor=ScriptedProcessor())
    first = workflow.run("Tea or coffee?", session_id="s1")

    workflow.processor = ScriptedProcessor()
    again = workflow.run("A different question", session_id="s1")

    assert again == first
    assert workflow.processor.calls == []
    assert planner.ainvoke.call_count == 1


def test_compile_write_failure_writes_single_error_artifact():
    store = _FlakyArtifactStore(failures=1)
    workflow = ResearchWorkflow(store=store, planner_llm=make_llm(plan_reply()), processor=ScriptedProcessor())

    with pytest.raises(StorageWriteFailure):
        workflow.run("Tea or coffee?", session_id="s1")

    stored = asyncio.run(store.get("s1"))
    assert stored["status"] == "error"
    assert "Error compiling report: disk full" in stored["answer"]
    assert store.artifact_puts == 2
    assert asyncio.run(store.get(f"runs/s1/steps/{StepId.compile().key}")) is None

    artifact = workflow.resume("s1")
    assert artifact.status == "complete"
    assert asyncio.run(store.get("s1"))["status"] == "complete"


def test_concurrent_sections_keep_outline_order():
    delays = {TITLES[0]: 0.05, TITLES[1]: 0.03, TITLES[2]: 0.01}
    processor = ScriptedProcessor(delays=delays)
    workflow = ResearchWorkflow(
        store=InMemoryStore(),
        planner_llm=make_llm(plan_reply()),
        processor=processor,
        config=ResearchConfig(max_concurrency=3),
    )

    artifact = workflow.run("Tea or coffee?")

    assert [line for line in artifact.answer.splitlines() if line.startswith("## ")] == [f"## {t}" for t in TITLES]
    assert sorted(processor.calls) == sorted(TITLES)


def test_resume_unknown_session_raises():
    workflow = ResearchWorkflow(store=InMemoryStore(), planner_llm=make_llm(), processor=ScriptedProcessor())
    with pytest.raises(KeyError):
        workflow.resume("missing")


def test_coerce_sections_skips_junk():
    parsed = {"sections": [{"title": " A ", "focus": "f"}, {"focus": "no title"}, "B", 3, {"title": ""}]}
    assert [(s.title, s.focus) for s in coerce_sections(parsed)] == [("A", "f"), ("B", "")]
    assert coerce_sections({"queries": ["x"]}) == []


def test_assemble_report_dedupes_by_url_first_wins():
    results = [
        SectionResult(title="A", content="## A\n\nOne.", sources=[SourceRef(title="First", url="https://x")]),
        SectionResult(title="B", content="## B\n\nTwo.", sources=[SourceRef(title="Second", url="https://x")]),
    ]
    artifact = assemble_report("Q", results)
    assert artifact.answer == "# Q\n\n## A\n\nOne.\n\n## B\n\nTwo.\n"
    assert artifact.sources == [SourceRef(title="First", url="https://x")]


def _long_plan(count: int) -> str:
    return json.dumps({"sections": [{"title": f"Quantum computing part {i}"} for i in range(count)]})


@pytest.mark.parametrize("max_concurrency", [1, 4])
def test_long_outline_completes_within_step_limit(max_concurrency):
    processor = ScriptedProcessor()
    workflow = ResearchWorkflow(
        store=InMemoryStore(),
        planner_llm=make_llm(_long_plan(110)),
        processor=processor,
        config=ResearchConfig(max_concurrency=max_concurrency),
    )

    artifact = workflow.run("Quantum computing", session_id="s1")

    assert workflow.config.recursion_limit < 110
    assert artifact.status == "complete"
    assert len(processor.calls) == 110
    headings = [line for line in artifact.answer.splitlines() if line.startswith("## ")]
    assert headings == [f"## Quantum computing part {i}" for i in range(110)]


def test_long_outline_resumes_after_crash():
    store = InMemoryStore()
    workflow = ResearchWorkflow(
        store=store,
        planner_llm=make_llm(_long_plan(110)),
        processor=ScriptedProcessor(fail_on="Quantum computing part 105"),
    )

    with pytest.raises(WorkerCrash):
        workflow.run("Quantum computing", session_id="s1")

    workflow.processor = ScriptedProcessor()
    artifact = workflow.resume("s1")

    assert artifact.status == "complete"
    assert workflow.processor.calls == [f"Quantum computing part {i}" for i in range(105, 110)]


def test_stored_report_survives_unrecorded_compile_checkpoint():
    store = _CheckpointFailingStore(f"runs/s1/steps/{StepId.compile().key}")
    workflow = ResearchWorkflow(store=store, planner_llm=make_llm(plan_reply()), processor=ScriptedProcessor())

    artifact = workflow.run("Tea or coffee?", session_id="s1")

    assert artifact.status == "complete"
    assert asyncio.run(store.get("s1")) == artifact.model_dump(mode="json")
