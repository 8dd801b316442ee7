"""Prompt templates for planning, query generation and section writing."""

from __future__ import annotations

from .contracts import OutlineSection
from .validator import Comparison, DualOption, QueryClass, classify_query

_JSON_ONLY = "Return ONLY the JSON object, no markdown and no additional text."


def planner_prompt(query: str, query_class: QueryClass | None = None) -> str:
    """Build the outline prompt, shaped by the query class."""
    query_class = query_class or classify_query(query)

    if isinstance(query_class, DualOption):
        t, o = query_class.topic, query_class.option
        return f"""Generate a research report outline for: {query}

This question is about {t} and whether to have it with or without {o}. Create sections that cover both options.

Required sections (3-4):
1. Introduction to {t} and the question
2. {t} with {o}: benefits, uses, characteristics
3. {t} without {o}: benefits, uses, characteristics
4. Comparison and conclusion: which is better for different situations

Output JSON format:
{{
  "sections": [
    {{ "title": "Introduction: {t} with or without {o}", "focus": "Overview of {t} and the question" }},
    {{ "title": "{t} with {o}", "focus": "Benefits, characteristics, and uses of {t} with {o}" }},
    {{ "title": "{t} without {o}", "focus": "Benefits, characteristics, and uses of {t} without {o}" }},
    {{ "title": "Comparison: {t} with or without {o}", "focus": "Which option is better for different situations" }}
  ]
}}

CRITICAL: Every section MUST be about {t} and {o}. {_JSON_ONLY}"""

    if isinstance(query_class, Comparison):
        labels = query_class.labels
        a, b = labels[0], labels[1]
        compared = " vs ".join(labels)
        terms = ", ".join(labels)
        return f"""Generate a research report outline comparing: {compared}.

User Question: {query}

Every section title MUST mention at least one of these terms: {terms}.

Required sections (3-4):
1. Introduction comparing {a} and {b}
2. Characteristics and features of {a}
3. Characteristics and features of {b}
4. Comparison and conclusion: which is better for different situations

Output JSON format:
{{
  "sections": [
    {{ "title": "Introduction: {a} vs {b}", "focus": "Overview comparing both" }},
    {{ "title": "About {a}", "focus": "Features, characteristics, and benefits of {a}" }},
    {{ "title": "About {b}", "focus": "Features, characteristics, and benefits of {b}" }},
    {{ "title": "Comparison: {a} vs {b}", "focus": "Which is better for different situations and why" }}
  ]
}}

CRITICAL: Every section title MUST include words from the question. {_JSON_ONLY}"""

    return f"""Generate a research report outline that answers this question: {query}

CRITICAL: Every section MUST be about the topic of the question. Extract the main topic from "{query}" and make sure every section relates to it.

Create 3-5 sections that explore different aspects of the question.

Output JSON format:
{{
  "sections": [
    {{ "title": "Introduction to [Topic]", "focus": "Overview answering the question" }},
    {{ "title": "Key Aspects of [Topic]", "focus": "Important details about the topic" }},
    {{ "title": "Applications of [Topic]", "focus": "Real-world examples related to the question" }},
    {{ "title": "Conclusion: [Topic]", "focus": "Summary answering the question" }}
  ]
}}

CRITICAL: Replace [Topic] with the actual topic from "{query}". {_JSON_ONLY}"""


def search_queries_prompt(section_title: str, section_focus: str) -> str:
    return f"""You are a search query generator. Generate 2-3 specific search queries for the following report section.

Section Title: {section_title}
Section Focus: {section_focus}

Respond with ONLY a valid JSON object in this exact format:
{{"queries": ["first search query", "second search query", "third search query"]}}

{_JSON_ONLY}"""


def writer_prompt(section_title: str, context: str) -> str:
    return f"""You are a technical writer. Write one section of a research report.

Section Title: {section_title}

Context / Sources:
{context}

Instructions:
1. Write ONLY about the section title: "{section_title}"
2. Use the provided context to inform your writing
3. If the context doesn't match the section title, still write about the section title using general knowledge
4. Start with "## {section_title}"
5. Use subheadings (###) for structure
6. Length: 300-500 words
7. Do NOT include a references section; sources are compiled separately
8. Output strictly Markdown text (no JSON, no code fences)

Stay focused on "{section_title}". Return ONLY Markdown text."""


def off_topic_reminder(section_title: str) -> str:
    return f'\n\nREMINDER: You MUST write about "{section_title}". Do not write about unrelated topics.'


def general_knowledge_context(section: OutlineSection) -> str:
    focus = section.focus or section.title
    return (
        f"Section Focus: {focus}\n\n"
        "Note: No external sources were found. Write about the section title using general knowledge."
    )
