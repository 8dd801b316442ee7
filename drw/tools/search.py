"""External knowledge sources used to ground report sections.

Each source answers a lookup term with zero or one best match. Sources raise on
transport errors; the section processor logs and swallows them.

Environment variables:
    TAVILY_API_KEY (or TAVILY-PYTHON-RESEARCH-API-KEY): enables the Tavily source
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any, Iterable, Protocol
from urllib.parse import quote

import httpx

from drw.agents.research.contracts import SourceRecord
from drw.config import DEFAULT_USER_AGENT, ResearchConfig

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>?")

WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/"
WIKIPEDIA_PAGE_URL = "https://en.wikipedia.org/wiki/"


class KnowledgeSource(Protocol):
    """A lookup capability returning the best match for a term, or None."""

    name: str

    async def lookup(self, term: str) -> SourceRecord | None:
        ...


class WikipediaSource:
    """Wikipedia search + page summary.

    The search API picks the best title; the REST summary endpoint supplies
    the extract and canonical url. When the summary is unavailable the search
    snippet is used instead.
    """

    name = "wikipedia"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self._client = client
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent}

    async def lookup(self, term: str) -> SourceRecord | None:
        if self._client is not None:
            return await self._lookup(self._client, term)
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            return await self._lookup(client, term)

    async def _lookup(self, client: httpx.AsyncClient, term: str) -> SourceRecord | None:
        search = await client.get(
            WIKIPEDIA_API_URL,
            params={"action": "query", "list": "search", "srsearch": term, "format": "json"},
            headers=self.headers,
        )
        if not search.is_success:
            logger.warning("Wikipedia search failed for %r: HTTP %s", term, search.status_code)
            return None

        hits = (search.json().get("query") or {}).get("search") or []
        if not hits:
            return None
        best = hits[0]
        title = best.get("title") or term

        summary = await client.get(f"{WIKIPEDIA_SUMMARY_URL}{quote(title, safe='')}", headers=self.headers)
        if summary.is_success:
            data = summary.json()
            url = ((data.get("content_urls") or {}).get("desktop") or {}).get("page") or ""
            return SourceRecord(title=data.get("title") or title, url=url, extract=data.get("extract"))

        snippet = _TAG_RE.sub("", best.get("snippet") or "")
        return SourceRecord(
            title=title,
            url=f"{WIKIPEDIA_PAGE_URL}{quote(title.replace(' ', '_'), safe='')}",
            extract=snippet or None,
        )


class ArxivSource:
    """arXiv paper search via the `arxiv` client (blocking; run in a worker thread)."""

    name = "arxiv"

    def __init__(self, client: Any | None = None):
        self._client = client

    def _search(self, term: str) -> SourceRecord | None:
        import arxiv

        client = self._client or arxiv.Client()
        result = next(client.results(arxiv.Search(query=term, max_results=1)), None)
        if result is None:
            return None
        summary = " ".join((result.summary or "").split())
        return SourceRecord(title=result.title, url=result.entry_id, extract=summary or None)

    async def lookup(self, term: str) -> SourceRecord | None:
        return await asyncio.to_thread(self._search, term)


def search_provider_available() -> bool:
    """Check if Tavily credentials are configured."""
    return bool(os.getenv("TAVILY-PYTHON-RESEARCH-API-KEY") or os.getenv("TAVILY_API_KEY"))


class TavilySource:
    """Tavily web search, best result only (blocking client; run in a worker thread)."""

    name = "tavily"

    def __init__(self, client: Any | None = None, api_key: str | None = None):
        self._client = client
        self.api_key = api_key or os.getenv("TAVILY-PYTHON-RESEARCH-API-KEY") or os.getenv("TAVILY_API_KEY")

    def _search(self, term: str) -> SourceRecord | None:
        client = self._client
        if client is None:
            if not self.api_key:
                raise RuntimeError(
                    "Missing search provider credentials. Set TAVILY_API_KEY "
                    "(or TAVILY-PYTHON-RESEARCH-API-KEY)."
                )
            from tavily import TavilyClient

            client = TavilyClient(self.api_key)
        response = client.search(query=term, max_results=1)
        results = response.get("results") if isinstance(response, dict) else None
        if not results:
            return None
        best = results[0]
        return SourceRecord(
            title=best.get("title") or best.get("url") or term,
            url=best.get("url") or "",
            extract=best.get("content"),
        )

    async def lookup(self, term: str) -> SourceRecord | None:
        return await asyncio.to_thread(self._search, term)


def build_sources(names: Iterable[str], config: ResearchConfig | None = None) -> list[KnowledgeSource]:
    """Build knowledge sources by name ('wikipedia', 'arxiv', 'tavily')."""
    config = config or ResearchConfig()
    sources: list[KnowledgeSource] = []
    for name in names:
        key = name.strip().lower()
        if key == "wikipedia":
            sources.append(WikipediaSource(timeout=config.http_timeout, user_agent=config.user_agent))
        elif key == "arxiv":
            sources.append(ArxivSource())
        elif key == "tavily":
            if not search_provider_available():
                logger.warning("Tavily source requested but TAVILY_API_KEY is not set; lookups will fail")
            sources.append(TavilySource())
        elif key:
            raise ValueError(f"Unknown knowledge source: {name!r}")
    return sources
