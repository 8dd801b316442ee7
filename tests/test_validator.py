"""Tests for query classification and outline relevance validation."""

import pytest

from drw.agents.research.contracts import OutlineSection
from drw.agents.research.prompts import planner_prompt
from drw.agents.research.validator import (
    Comparison,
    DualOption,
    RelevanceReport,
    SingleTopic,
    classify_query,
    ensure_relevant,
    section_is_relevant,
    validate_outline,
)
from drw.errors import EmptyPlan, OffTopicPlan


def _sections(*titles: str) -> list[OutlineSection]:
    return [OutlineSection(title=t, focus="") for t in titles]


class TestClassifyQuery:
    def test_or_question_is_a_comparison(self):
        cls = classify_query("Tea or coffee?")
        assert isinstance(cls, Comparison)
        assert cls.labels == ("Tea", "coffee")
        assert cls.terms == ("tea", "coffee")

    @pytest.mark.parametrize("query", ["Python vs Rust", "Python vs. Rust", "Python versus Rust"])
    def test_vs_variants(self, query):
        cls = classify_query(query)
        assert isinstance(cls, Comparison)
        assert cls.labels == ("Python", "Rust")

    @pytest.mark.parametrize("query", ["cereal with or without milk", "cereal with or without milk?"])
    def test_with_or_without_wins_over_or(self, query):
        cls = classify_query(query)
        assert cls == DualOption(topic="cereal", option="milk")
        assert set(cls.keywords()) == {"cereal", "milk"}

    def test_single_topic_keeps_three_significant_words(self):
        cls = classify_query("What is the history of quantum computing research?")
        assert isinstance(cls, SingleTopic)
        assert cls.keywords() == ("history", "quantum", "computing")

    def test_short_terms_still_produce_keywords(self):
        cls = classify_query("AI or ML")
        assert isinstance(cls, Comparison)
        assert cls.keywords() == ("ai", "ml")


class TestRelevance:
    def test_whole_word_match_only(self):
        assert not section_is_relevant(OutlineSection(title="Teapots through history"), ["tea"])
        assert section_is_relevant(OutlineSection(title="Green tea"), ["tea"])

    def test_focus_counts_toward_relevance(self):
        assert section_is_relevant(OutlineSection(title="Overview", focus="Where tea grows"), ["tea"])

    def test_three_of_four_passes_threshold(self):
        cls = classify_query("Quantum computing")
        sections = _sections("Quantum basics", "Quantum hardware", "Computing models", "Closing thoughts")
        report = ensure_relevant(sections, cls)
        assert (report.relevant, report.total) == (3, 4)
        assert report.ratio == 0.75

    def test_two_of_four_is_off_topic(self):
        cls = classify_query("Quantum computing")
        sections = _sections("Quantum basics", "Weather", "Gardening", "Computing models")
        with pytest.raises(OffTopicPlan) as excinfo:
            ensure_relevant(sections, cls)
        assert (excinfo.value.relevant, excinfo.value.total) == (2, 4)

    def test_empty_outline_has_zero_ratio(self):
        assert RelevanceReport(relevant=0, total=0).ratio == 0.0


class TestValidateOutline:
    def test_off_topic_outline_replaced_with_fallback(self):
        validated = validate_outline(
            "Quantum computing", _sections("Roman history", "Baking bread", "Football", "Jazz")
        )
        assert validated.used_fallback
        assert validated.report.relevant == 0
        assert len(validated.sections) == 4
        assert all("quantum" in s.title.casefold() for s in validated.sections)

    def test_relevant_outline_kept_unchanged(self):
        sections = _sections("Quantum basics", "Quantum hardware", "Computing models", "Closing thoughts")
        validated = validate_outline("Quantum computing", sections)
        assert not validated.used_fallback
        assert validated.sections == sections

    def test_comparison_fallback_titles(self):
        validated = validate_outline("Tea or coffee?", _sections("Weather", "Sports"))
        assert [s.title for s in validated.sections] == [
            "Introduction: Tea vs coffee",
            "About Tea",
            "About coffee",
            "Comparison: Tea vs coffee",
        ]

    def test_dual_option_fallback_titles(self):
        validated = validate_outline("cereal with or without milk", _sections("Weather"))
        assert [s.title for s in validated.sections] == [
            "Introduction: cereal with or without milk",
            "cereal with milk",
            "cereal without milk",
            "Comparison: cereal with or without milk",
        ]

    def test_empty_outline_is_fatal(self):
        with pytest.raises(EmptyPlan, match="Planner generated no sections"):
            validate_outline("Quantum computing", [])


def test_planner_prompt_follows_query_class():
    assert "comparing: Tea vs coffee" in planner_prompt("Tea or coffee?")
    assert '"title": "cereal without milk"' in planner_prompt("cereal with or without milk")
    assert "Replace [Topic]" in planner_prompt("Quantum computing")
