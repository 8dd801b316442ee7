"""Query classification and outline relevance validation.

The query is classified once per run into a tagged variant. The same variant
picks the planner prompt, supplies the keywords the outline is checked
against, and builds the deterministic fallback outline when the generated
one drifts off topic.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from drw.errors import EmptyPlan, OffTopicPlan

from .contracts import OutlineSection

logger = logging.getLogger(__name__)

DEFAULT_RELEVANCE_THRESHOLD = 0.75
MAX_TOPIC_KEYWORDS = 3

STOP_WORDS = frozenset(
    {
        "what", "is", "are", "the", "a", "an", "of", "for", "about", "how", "why",
        "when", "where", "with", "without", "or", "and", "does", "do", "can",
        "should", "which", "who", "its", "it's", "was", "were", "this", "that",
        "there", "into", "from", "between", "better",
    }
)

_WORD_RE = re.compile(r"[a-z0-9]+(?:['-][a-z0-9]+)*")
_DUAL_OPTION_RE = re.compile(r"^(?P<topic>.*?\S)\s+with\s+or\s+without\s+(?P<option>.+)$", re.IGNORECASE | re.DOTALL)
_COMPARISON_SPLIT_RE = re.compile(r"\s+(?:vs\.?|versus|or)\s+", re.IGNORECASE)


def _words(text: str) -> list[str]:
    return _WORD_RE.findall(text.casefold())


def _significant_words(text: str) -> list[str]:
    return [w for w in _words(text) if len(w) > 2 and w not in STOP_WORDS]


def _clean(text: str) -> str:
    return text.replace("?", "").strip().strip(".!").strip()


def _term_keywords(term: str) -> list[str]:
    """Significant words of a term, or the whole term when it has none (e.g. 'AI')."""
    words = _significant_words(term)
    if words:
        return words
    folded = " ".join(_words(term))
    return [folded] if folded else []


def _unique(items: Sequence[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


@dataclass(frozen=True)
class DualOption:
    """`<topic> with or without <option>`: one topic, two ways to have it."""

    topic: str
    option: str

    def keywords(self) -> tuple[str, ...]:
        return _unique(_term_keywords(self.topic) + _term_keywords(self.option))

    def fallback_outline(self) -> list[OutlineSection]:
        t, o = self.topic, self.option
        return [
            OutlineSection(
                title=f"Introduction: {t} with or without {o}",
                focus=f"Overview of {t} and the question of using it with or without {o}",
            ),
            OutlineSection(title=f"{t} with {o}", focus=f"Benefits, characteristics, and uses of {t} with {o}"),
            OutlineSection(title=f"{t} without {o}", focus=f"Benefits, characteristics, and uses of {t} without {o}"),
            OutlineSection(
                title=f"Comparison: {t} with or without {o}",
                focus="Which option is better for different situations",
            ),
        ]


@dataclass(frozen=True)
class Comparison:
    """Two or more compared terms. `terms` are case-folded, `labels` keep the written case."""

    terms: tuple[str, ...]
    labels: tuple[str, ...]

    def keywords(self) -> tuple[str, ...]:
        out: list[str] = []
        for term in self.terms:
            out.extend(_term_keywords(term))
        return _unique(out)

    def fallback_outline(self) -> list[OutlineSection]:
        a, b = self.labels[0], self.labels[1]
        joined = " vs ".join(self.labels)
        return [
            OutlineSection(title=f"Introduction: {joined}", focus=f"Overview comparing {a} and {b}"),
            OutlineSection(title=f"About {a}", focus=f"Characteristics, features, and benefits of {a}"),
            OutlineSection(title=f"About {b}", focus=f"Characteristics, features, and benefits of {b}"),
            OutlineSection(title=f"Comparison: {joined}", focus="Which is better for different situations"),
        ]


@dataclass(frozen=True)
class SingleTopic:
    """Anything else. `keywords` are up to three significant words of the query."""

    topic_keywords: tuple[str, ...]
    topic: str

    def keywords(self) -> tuple[str, ...]:
        return self.topic_keywords

    def fallback_outline(self) -> list[OutlineSection]:
        t = self.topic
        return [
            OutlineSection(title=f"Introduction to {t}", focus=f"Overview and key information about {t}"),
            OutlineSection(title=f"Key Aspects of {t}", focus=f"Important details and characteristics of {t}"),
            OutlineSection(title=f"Applications of {t}", focus=f"Real-world examples and use cases of {t}"),
            OutlineSection(title=f"Conclusion: {t}", focus=f"Summary and final thoughts on {t}"),
        ]


QueryClass = DualOption | Comparison | SingleTopic


def classify_query(query: str) -> QueryClass:
    """Classify a query. Dual-option wins over comparison, which wins over single topic."""
    text = " ".join(query.split())

    dual = _DUAL_OPTION_RE.match(text)
    if dual:
        topic = _clean(dual.group("topic"))
        option = _clean(dual.group("option"))
        if topic and option:
            return DualOption(topic=topic, option=option)

    padded = f" {text.casefold()} "
    is_comparison = (
        " vs " in padded
        or " vs. " in padded
        or " versus " in padded
        or (" or " in padded and " with or " not in padded)
    )
    if is_comparison:
        labels = tuple(label for label in (_clean(p) for p in _COMPARISON_SPLIT_RE.split(text)) if label)
        if len(labels) >= 2:
            return Comparison(terms=tuple(label.casefold() for label in labels), labels=labels)

    return SingleTopic(
        topic_keywords=_unique(_significant_words(text))[:MAX_TOPIC_KEYWORDS],
        topic=_clean(text),
    )


@dataclass(frozen=True)
class RelevanceReport:
    relevant: int
    total: int

    @property
    def ratio(self) -> float:
        return self.relevant / self.total if self.total else 0.0


@dataclass(frozen=True)
class ValidatedOutline:
    """The authoritative outline for a run."""

    sections: list[OutlineSection]
    query_class: QueryClass
    report: RelevanceReport
    used_fallback: bool


def section_is_relevant(section: OutlineSection, keywords: Sequence[str]) -> bool:
    combined = f"{section.title} {section.focus}".casefold()
    words = set(_words(combined))
    padded = f" {' '.join(_words(combined))} "
    for keyword in keywords:
        if " " in keyword:
            if f" {keyword} " in padded:
                return True
        elif keyword in words:
            return True
    return False


def score_outline(sections: Sequence[OutlineSection], query_class: QueryClass) -> RelevanceReport:
    keywords = query_class.keywords()
    relevant = sum(1 for s in sections if section_is_relevant(s, keywords))
    return RelevanceReport(relevant=relevant, total=len(sections))


def ensure_relevant(
    sections: Sequence[OutlineSection],
    query_class: QueryClass,
    threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
) -> RelevanceReport:
    """Score the outline; raise OffTopicPlan below the threshold (strict) or at zero."""
    report = score_outline(sections, query_class)
    if report.relevant < threshold * report.total or report.relevant == 0:
        raise OffTopicPlan(relevant=report.relevant, total=report.total)
    return report


def validate_outline(
    query: str,
    sections: Sequence[OutlineSection],
    query_class: QueryClass | None = None,
    threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
) -> ValidatedOutline:
    """Accept the outline or replace it with the fallback for the query class.

    Raises:
        EmptyPlan: if the candidate outline has no sections.
    """
    if not sections:
        raise EmptyPlan("Planner generated no sections")

    query_class = query_class or classify_query(query)
    try:
        report = ensure_relevant(sections, query_class, threshold)
    except OffTopicPlan as e:
        fallback = query_class.fallback_outline()
        logger.warning("%s for %r; using fallback outline: %s", e, query, ", ".join(s.title for s in fallback))
        return ValidatedOutline(
            sections=fallback,
            query_class=query_class,
            report=RelevanceReport(relevant=e.relevant, total=e.total),
            used_fallback=True,
        )
    logger.debug("Outline relevance for %r: %.0f%%", query, report.ratio * 100)
    return ValidatedOutline(sections=list(sections), query_class=query_class, report=report, used_fallback=False)
