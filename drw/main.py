"""Command line entry point for the research workflow.

Usage:
    drw "Tea or coffee?"
    drw "Quantum computing" --store-dir .drw --out report.md
    drw --resume 3f2c... --store-dir .drw
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from drw.agents.research import ReportArtifact, ResearchService, ResearchWorkflow
from drw.config import ResearchConfig
from drw.factory import DefaultLLMFactory
from drw.integrations import is_observability_enabled
from drw.storage import DurableStore, FileStore, InMemoryStore

logger = logging.getLogger("drw")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="drw", description="Run a durable multi-step research workflow.")
    parser.add_argument("query", nargs="?", help="Research question")
    parser.add_argument("--resume", metavar="SESSION_ID", help="Re-drive an existing run from its checkpoints")
    parser.add_argument("--store-dir", help="Directory for checkpoints and reports (default: in memory)")
    parser.add_argument("--out", help="Write the markdown report to this file instead of stdout")
    parser.add_argument("--provider", choices=["openai", "gemini"], help="Model provider")
    parser.add_argument("--planner-model", help="Model for the plan step")
    parser.add_argument("--writer-model", help="Model for section writing")
    parser.add_argument("--sources", help="Comma separated knowledge sources (wikipedia,arxiv,tavily)")
    parser.add_argument("--max-concurrency", type=int, help="Sections researched at once")
    parser.add_argument("--generate-queries", action="store_true", default=None, help="Let the model draft search queries")
    parser.add_argument("--timeout", type=float, help="Give up waiting after this many seconds")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def config_from_args(args: argparse.Namespace) -> ResearchConfig:
    sources = None
    if args.sources:
        sources = tuple(s.strip().lower() for s in args.sources.split(",") if s.strip())
    return ResearchConfig.from_env(
        provider=args.provider,
        planner_model=args.planner_model,
        writer_model=args.writer_model,
        sources=sources,
        max_concurrency=args.max_concurrency,
        generate_queries=args.generate_queries,
        store_dir=args.store_dir,
    )


def build_store(config: ResearchConfig) -> DurableStore:
    if config.store_dir:
        return FileStore(config.store_dir)
    return InMemoryStore()


def render_report(artifact: ReportArtifact) -> str:
    lines = [artifact.answer.rstrip(), ""]
    if artifact.sources:
        lines += ["## Sources", ""]
        lines += [f"- [{s.title}]({s.url})" if s.url else f"- {s.title}" for s in artifact.sources]
        lines.append("")
    return "\n".join(lines)


async def run_cli(args: argparse.Namespace, service: ResearchService) -> ReportArtifact:
    if args.resume:
        session_id = args.resume
        await service.resume(session_id)
        print(f"Resuming session: {session_id}")
    else:
        session_id = await service.submit(args.query)
        print(f"Session: {session_id}")
    return await service.wait_for(session_id, timeout=args.timeout)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the drw CLI."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.query and not args.resume:
        parser.error("a query or --resume SESSION_ID is required")
    if args.resume and not (args.store_dir or ResearchConfig.from_env().store_dir):
        parser.error("--resume needs a persistent store (--store-dir or DRW_STORE_DIR)")

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    print(f"Langfuse tracing: {'enabled' if is_observability_enabled() else 'disabled'}")
    workflow = ResearchWorkflow(store=build_store(config), llm_factory=DefaultLLMFactory(), config=config)
    service = ResearchService(workflow)

    try:
        artifact = asyncio.run(run_cli(args, service))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.error("Research failed: %s", e)
        return 1

    report = render_report(artifact)
    if args.out:
        Path(args.out).write_text(report, encoding="utf-8")
        print(f"Report written to {args.out}")
    else:
        print(report)
    return 1 if artifact.is_error else 0


if __name__ == "__main__":
    sys.exit(main())
