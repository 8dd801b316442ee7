"""Example script for the research workflow.

Supports any OpenAI-compatible API endpoint via .env.
Configure MODEL_NAME, MODEL_URL, and API_KEY in a .env file next to this script.

Usage:
    python examples/run_research/run_research.py
    python examples/run_research/run_research.py --query "Tea or coffee?" --store-dir .drw
    python examples/run_research/run_research.py --resume <session_id> --store-dir .drw
"""

import argparse
import asyncio
import os

from dotenv import load_dotenv

from drw.agents.research import ResearchService, ResearchWorkflow, RunStatus
from drw.config import ResearchConfig
from drw.integrations import get_observed_llm, is_observability_enabled
from drw.storage import FileStore, InMemoryStore

# Configuration - edit these values directly
SOURCES = ("wikipedia", "arxiv")
MAX_CONCURRENCY = 2
GENERATE_QUERIES = True

env_path = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(env_path)


def get_llm(max_tokens: int):
    """ChatOpenAI configured from environment, traced by Langfuse when configured."""
    name = os.getenv("MODEL_NAME", "gpt-4o-mini")
    url = os.getenv("MODEL_URL")
    api_key = os.getenv("API_KEY") or os.getenv("OPENAI_API_KEY")
    return get_observed_llm(model=name, base_url=url, api_key=api_key, temperature=0, max_tokens=max_tokens)


async def run(args: argparse.Namespace) -> None:
    config = ResearchConfig(
        sources=SOURCES,
        max_concurrency=MAX_CONCURRENCY,
        generate_queries=GENERATE_QUERIES,
        store_dir=args.store_dir,
    )
    store = FileStore(args.store_dir) if args.store_dir else InMemoryStore()
    workflow = ResearchWorkflow(
        store=store,
        planner_llm=get_llm(config.plan_max_tokens),
        writer_llm=get_llm(config.write_max_tokens),
        config=config,
    )
    service = ResearchService(workflow)

    if args.resume:
        session_id = args.resume
        await service.resume(session_id)
    else:
        session_id = await service.submit(args.query)
    print(f"Session: {session_id}")
    print("=" * 60)

    while service.status(session_id) in (RunStatus.QUEUED, RunStatus.RUNNING):
        print(f"  status: {service.status(session_id).value}")
        await asyncio.sleep(config.poll_interval)
    artifact = await service.wait_for(session_id)

    print("=" * 60)
    print(artifact.answer)
    print("Sources:")
    for src in artifact.sources:
        print(f"  - {src.title}: {src.url}")


def main():
    parser = argparse.ArgumentParser(description="Run the research workflow against an OpenAI-compatible API")
    parser.add_argument("--query", type=str, default="cereal with or without milk", help="Query to run")
    parser.add_argument("--resume", type=str, help="Session id to resume (needs --store-dir)")
    parser.add_argument("--store-dir", type=str, help="Directory for checkpoints and reports")
    args = parser.parse_args()

    print(f"Model: {os.getenv('MODEL_NAME', 'gpt-4o-mini')}")
    print(f"Langfuse tracing: {'enabled' if is_observability_enabled() else 'disabled'}\n")
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
