"""Tools module - knowledge sources consumed by the section processor."""

from drw.tools.search import (
    ArxivSource,
    KnowledgeSource,
    TavilySource,
    WikipediaSource,
    build_sources,
    search_provider_available,
)

__all__ = [
    "ArxivSource",
    "KnowledgeSource",
    "TavilySource",
    "WikipediaSource",
    "build_sources",
    "search_provider_available",
]
