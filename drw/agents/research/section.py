"""Section processor: retrieve, write and self-check one outline section.

`SectionProcessor.process` always returns a SectionResult. Knowledge-source
failures shrink the context; any other failure becomes the section's content.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from typing import TYPE_CHECKING, AsyncIterator, Sequence

from langchain_core.language_models import BaseChatModel

from drw.errors import SectionFailure

from .contracts import OutlineSection, SectionResult, SourceRecord
from .prompts import general_knowledge_context, off_topic_reminder, search_queries_prompt, writer_prompt
from .shared.extract import extract_queries
from .shared.llm import generate_text

if TYPE_CHECKING:
    from drw.tools.search import KnowledgeSource

logger = logging.getLogger(__name__)

_TITLE_WORD_RE = re.compile(r"[a-z0-9]+(?:['-][a-z0-9]+)*")


def build_retrieval_query(section: OutlineSection, max_chars: int = 100) -> str:
    """Title and focus joined, bounded to `max_chars`."""
    return f"{section.title} {section.focus}".strip()[:max_chars].strip()


def build_context(sources: Sequence[SourceRecord], section: OutlineSection) -> str:
    context = "\n\n".join(
        f"Title: {s.title}\nSummary: {s.extract or 'No summary available'}" for s in sources
    )
    if context.strip():
        return context
    return general_knowledge_context(section)


def title_keywords(title: str) -> list[str]:
    return [w for w in _TITLE_WORD_RE.findall(title.casefold()) if len(w) > 3]


def is_on_topic(title: str, content: str) -> bool:
    """True if any significant title word appears in the content (or the title has none)."""
    words = title_keywords(title)
    if not words:
        return True
    content_lower = content.casefold()
    return any(w in content_lower for w in words)


def failed_section(section: OutlineSection, error: BaseException | str) -> SectionResult:
    return SectionResult(
        title=section.title,
        content=f"## {section.title}\n\nAn error occurred while processing this section: {error}",
        sources=[],
    )


class SectionProcessor:
    """Researches and writes a single report section."""

    def __init__(
        self,
        llm: BaseChatModel,
        sources: Sequence["KnowledgeSource"] = (),
        max_query_chars: int = 100,
        generate_queries: bool = False,
        max_generated_queries: int = 3,
    ):
        self.llm = llm
        self.sources = list(sources)
        self.max_query_chars = max_query_chars
        self.generate_queries = generate_queries
        self.max_generated_queries = max_generated_queries

    async def process(self, section: OutlineSection, limiter: asyncio.Semaphore | None = None) -> SectionResult:
        """Produce exactly one SectionResult for `section`; never raises an Exception."""
        try:
            return await self._process(section, limiter)
        except Exception as e:
            logger.exception("Section %r failed", section.title)
            return failed_section(section, e)

    async def _process(self, section: OutlineSection, limiter: asyncio.Semaphore | None) -> SectionResult:
        queries = await self._retrieval_queries(section, limiter)
        logger.info("Researching section %r with queries %s", section.title, queries)

        found = await self._retrieve(queries, limiter)
        logger.info("Found %d sources for section %r", len(found), section.title)

        context = build_context(found, section)
        prompt = writer_prompt(section.title, context)
        content = await self._write(prompt, limiter, run_name="write_section")

        if not is_on_topic(section.title, content):
            logger.warning("Content may be off-topic for section %r; regenerating once", section.title)
            try:
                retry = await self._write(
                    prompt + off_topic_reminder(section.title), limiter, run_name="rewrite_section"
                )
            except Exception as e:
                logger.warning("Rewrite of section %r failed, keeping first draft: %s", section.title, e)
            else:
                content = retry

        return SectionResult(title=section.title, content=content, sources=[s.ref() for s in found])

    async def _retrieval_queries(self, section: OutlineSection, limiter: asyncio.Semaphore | None) -> list[str]:
        direct = build_retrieval_query(section, self.max_query_chars)
        if not self.generate_queries:
            return [direct]
        try:
            async with _slot(limiter):
                reply = await generate_text(
                    self.llm, search_queries_prompt(section.title, section.focus), "search_queries"
                )
            return [q[: self.max_query_chars] for q in extract_queries(reply, self.max_generated_queries)]
        except Exception as e:
            logger.warning("Query generation failed for %r, using title+focus: %s", section.title, e)
            return [direct]

    async def _retrieve(self, queries: Sequence[str], limiter: asyncio.Semaphore | None) -> list[SourceRecord]:
        lookups = [(source, q) for q in queries for source in self.sources]
        results = await asyncio.gather(*(self._lookup(source, q, limiter) for source, q in lookups))

        found: list[SourceRecord] = []
        seen: set[str] = set()
        for record in results:
            if record is None:
                continue
            dedupe_key = record.url or record.title
            if dedupe_key in seen:
                continue
            seen.add(dedupe_key)
            found.append(record)
        return found

    async def _lookup(
        self, source: "KnowledgeSource", term: str, limiter: asyncio.Semaphore | None
    ) -> SourceRecord | None:
        try:
            async with _slot(limiter):
                return await source.lookup(term)
        except Exception as e:
            logger.warning("%s lookup failed for %r: %s", getattr(source, "name", "source"), term, e)
            return None

    async def _write(self, prompt: str, limiter: asyncio.Semaphore | None, run_name: str) -> str:
        async with _slot(limiter):
            content = await generate_text(self.llm, prompt, run_name)
        if not content:
            raise SectionFailure("Content generation returned no text")
        return content


@contextlib.asynccontextmanager
async def _slot(limiter: asyncio.Semaphore | None) -> AsyncIterator[None]:
    if limiter is None:
        yield
        return
    async with limiter:
        yield
