"""Tests for recovering JSON and text from model output."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from drw.agents.research.shared import extract_json, extract_queries, extract_text_from_content, generate_text
from drw.agents.research.shared.extract import (
    _NOT_FOUND,
    _braces,
    _braces_without_trailing_commas,
    _bracketed_list,
    _fenced,
    _quoted_strings,
)
from drw.errors import MalformedOutput


def test_direct_json_object():
    assert extract_json('{"sections": [{"title": "A"}]}') == {"sections": [{"title": "A"}]}


def test_direct_json_list_is_returned_as_is():
    assert extract_json(" [1, 2] ") == [1, 2]


def test_fenced_block_inside_prose():
    text = 'Here you go:\n```json\n{"a": 1}\n```\nAnything else?'
    assert extract_json(text) == {"a": 1}


def test_fenced_block_without_language_tag():
    assert extract_json('```\n{"a": 3}\n```') == {"a": 3}


def test_later_fence_used_when_first_is_not_json():
    text = '```\nnot json at all\n```\nthen\n```json\n{"a": 2}\n```'
    assert extract_json(text) == {"a": 2}


def test_outer_braces_span():
    assert extract_json('Sure! {"a": {"b": 1}} hope that helps') == {"a": {"b": 1}}


def test_trailing_commas_removed_inside_braces():
    text = 'Plan: {"sections": [{"title": "X",},],}'
    assert extract_json(text) == {"sections": [{"title": "X"}]}


def test_bracketed_list_becomes_queries():
    assert extract_json('queries: ["alpha", "beta",] done') == {"queries": ["alpha", "beta"]}


def test_quoted_strings_become_queries():
    assert extract_json('Try "alpha" and then "beta gamma"') == {"queries": ["alpha", "beta gamma"]}


def test_unparseable_text_raises_with_snippet():
    text = "no structure here " * 30
    with pytest.raises(MalformedOutput) as excinfo:
        extract_json(text)
    assert excinfo.value.snippet == text[:200]
    assert "No JSON found in response" in str(excinfo.value)


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_input_raises(text):
    with pytest.raises(MalformedOutput):
        extract_json(text)


def test_extract_queries_from_object_respects_limit():
    text = '{"queries": ["quantum bits", " ", "superposition", "entanglement", "decoherence"]}'
    assert extract_queries(text, limit=3) == ["quantum bits", "superposition", "entanglement"]


def test_extract_queries_from_bare_list():
    assert extract_queries('["a", "b"]') == ["a", "b"]


def test_extract_queries_rejects_non_list_payload():
    with pytest.raises(MalformedOutput):
        extract_queries('{"sections": []}')


def test_extract_text_from_content_blocks():
    content = [
        {"type": "text", "text": "first"},
        {"type": "tool_use", "text": "ignored"},
        "second",
        {"text": "third"},
    ]
    assert extract_text_from_content(content) == "first\nsecond\nthird"
    assert extract_text_from_content(None) == ""
    assert extract_text_from_content("plain") == "plain"


def test_generate_text_strips_reply_and_names_the_run():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=MagicMock(content="  ## Title\n\nBody.  \n"))

    text = asyncio.run(generate_text(llm, "Write it", "write_section"))

    assert text == "## Title\n\nBody."
    messages = llm.ainvoke.call_args.args[0]
    assert messages[0].content == "Write it"
    assert llm.ainvoke.call_args.kwargs["config"] == {"run_name": "write_section"}


@pytest.mark.parametrize(
    "tactic,text,expected",
    [
        (_fenced, "```json\n[1]\n```", [1]),
        (_braces, 'x {"a": 1} y', {"a": 1}),
        (_braces, 'x {"a": 1,} y', _NOT_FOUND),
        (_braces_without_trailing_commas, 'x {"a": 1,} y', {"a": 1}),
        (_bracketed_list, 'x ["q",] y', {"queries": ["q"]}),
        (_quoted_strings, "no quotes", _NOT_FOUND),
    ],
)
def test_individual_tactics(tactic, text, expected):
    result = tactic(text)
    if expected is _NOT_FOUND:
        assert result is _NOT_FOUND
    else:
        assert result == expected
