"""Thin helpers around LangChain chat models for plain text prompts."""

from __future__ import annotations

from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage


def extract_text_from_content(content: Any) -> str:
    """Extract text from LangChain message content.

    Handles both string content and structured content blocks
    (list of dicts with 'type' and 'text' keys, as returned by Gemini).
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = []
        for block in content:
            if isinstance(block, dict):
                if "text" in block and block.get("type", "text") == "text":
                    text_parts.append(str(block["text"]))
            elif isinstance(block, str):
                text_parts.append(block)
        return "\n".join(text_parts)

    return str(content)


async def generate_text(llm: BaseChatModel, prompt: str, run_name: str) -> str:
    """Send a single user prompt and return the reply text (may be empty)."""
    response = await llm.ainvoke([HumanMessage(content=prompt)], config={"run_name": run_name})
    return extract_text_from_content(getattr(response, "content", response)).strip()
