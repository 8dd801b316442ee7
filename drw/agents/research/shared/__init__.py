"""Helpers shared by the research workflow nodes."""

from drw.agents.research.shared.extract import extract_json, extract_queries
from drw.agents.research.shared.llm import extract_text_from_content, generate_text

__all__ = [
    "extract_json",
    "extract_queries",
    "extract_text_from_content",
    "generate_text",
]
