"""Error taxonomy for the research workflow.

Failures local to one section never escape the section processor. Planning,
fatal validation and compile failures propagate to the run and end it in the
errored state.
"""

from __future__ import annotations


class ResearchError(Exception):
    """Base class for research workflow errors."""


class MalformedOutput(ResearchError):
    """A generative response could not be parsed into structured data."""

    def __init__(self, text: object):
        self.snippet = text[:200] if isinstance(text, str) else repr(text)[:200]
        super().__init__(f"No JSON found in response: {self.snippet}")


class PlanningFailed(ResearchError):
    """The plan step could not produce a parseable outline."""


class EmptyPlan(ResearchError):
    """The parsed outline has zero sections."""


class OffTopicPlan(ResearchError):
    """Too few outline sections mention the query's topic terms.

    Handled by the validator, which swaps in the fallback outline.
    """

    def __init__(self, relevant: int, total: int):
        self.relevant = relevant
        self.total = total
        super().__init__(f"Only {relevant}/{total} sections are relevant to the query")


class SectionFailure(ResearchError):
    """A section could not be written. Embedded into the section content."""


class StorageWriteFailure(ResearchError):
    """The final artifact could not be written.

    Raised after the error-shaped artifact write was already attempted, so the
    top-level handler does not write again.
    """


class DuplicateRunError(ResearchError):
    """A run with this id already exists."""
