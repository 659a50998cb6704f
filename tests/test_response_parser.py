"""Unit tests for the summary response parser."""
import json

import pytest

from voicebrief.core.errors import MalformedResponse
from voicebrief.extract.response_parser import parse_summary_response, strip_code_fence
from voicebrief.models.schemas import Summary

CLEAN = '{"title": "Errands", "summary": "Two errands.", "actionItems": ["Buy milk"], "keyPoints": ["Short list"]}'


def test_parses_clean_json():
    s = parse_summary_response(CLEAN)
    assert s == Summary(title="Errands", summary="Two errands.", action_items=["Buy milk"], key_points=["Short list"])


@pytest.mark.parametrize(
    "raw",
    [
        "```json\n" + CLEAN + "\n```",
        "```\n" + CLEAN + "\n```",
        "  ```JSON " + CLEAN + "```  ",
    ],
)
def test_strips_markdown_fences(raw):
    assert parse_summary_response(raw).title == "Errands"


def test_strip_code_fence_leaves_plain_text():
    assert strip_code_fence("  {}  ") == "{}"


def test_missing_fields_get_defaults():
    s = parse_summary_response("{}")
    assert s.title == "Untitled"
    assert s.summary == ""
    assert s.action_items == []
    assert s.key_points == []


def test_empty_title_becomes_untitled():
    assert parse_summary_response('{"title": "", "summary": null}').title == "Untitled"


def test_non_list_items_become_empty():
    s = parse_summary_response('{"actionItems": "call mom", "keyPoints": {"a": 1}}')
    assert s.action_items == []
    assert s.key_points == []


def test_items_coerced_to_strings_and_nulls_dropped():
    s = parse_summary_response('{"actionItems": [1, null, "x"]}')
    assert s.action_items == ["1", "x"]


def test_snake_case_keys_accepted():
    s = parse_summary_response('{"action_items": ["a"], "key_points": ["b"]}')
    assert s.action_items == ["a"]
    assert s.key_points == ["b"]


@pytest.mark.parametrize("raw", ["", "not json", "{'title': 'x'}", "```json\n{\"title\": \n```"])
def test_invalid_json_is_malformed(raw):
    with pytest.raises(MalformedResponse) as ei:
        parse_summary_response(raw)
    assert ei.value.raw == raw


@pytest.mark.parametrize("raw", ["[1, 2]", '"just a string"', "42", "null"])
def test_non_object_json_is_malformed(raw):
    with pytest.raises(MalformedResponse):
        parse_summary_response(raw)


def test_serialized_summary_parses_back_unchanged():
    original = Summary(title="Plan", summary="Weekly plan.", action_items=["Book room"], key_points=["Budget ok", "Ship Friday"])
    raw = json.dumps(
        {
            "title": original.title,
            "summary": original.summary,
            "actionItems": original.action_items,
            "keyPoints": original.key_points,
        }
    )
    assert parse_summary_response(raw) == original
