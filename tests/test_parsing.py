"""Tests for LLM output cleaning and truncation repair."""

import json

from desktop_agent.parsing import (
    ERROR_ANALYSIS,
    parse_action_plan,
    parse_analysis,
    repair_truncated_json,
    strip_code_fences,
)

GOOD = {
    "context": "desktop",
    "ui_elements": [{"type": "button", "coords": [1, 2, 3, 4]}],
    "state": {"active_window": "Terminal", "window_title": "bash", "window_class": "term"},
    "challenges": [],
}


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("```\n[]\n```") == "[]"
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'
    assert strip_code_fences(None) == ""


def test_parse_analysis_valid():
    data, text = parse_analysis("```json\n" + json.dumps(GOOD) + "\n```")
    assert data == GOOD
    assert text == json.dumps(GOOD)


def test_missing_trailing_brace_is_repaired():
    truncated = json.dumps(GOOD)[:-1]
    data, text = parse_analysis(truncated)
    assert data == GOOD
    assert text == truncated + "}"


def test_repair_appends_braces_then_brackets():
    assert repair_truncated_json('{"a": [1') == '{"a": [1}]'
    assert repair_truncated_json("{}}") == "{}}"


def test_unrepairable_analysis_falls_back_to_error_object():
    data, _ = parse_analysis('{"context": "x", "ui_elements": [{"type": "a"')
    assert data == ERROR_ANALYSIS
    assert data["challenges"] == ["JSON parsing error, possible truncation"]
    data["challenges"].append("mutated")
    assert ERROR_ANALYSIS["challenges"] == ["JSON parsing error, possible truncation"]


def test_extra_closing_brackets_fall_back():
    data, _ = parse_analysis('{"context": "x"}]]')
    assert data["context"] == "error"


def test_non_object_analysis_falls_back():
    data, _ = parse_analysis("[1, 2]")
    assert data == ERROR_ANALYSIS


def test_parse_action_plan():
    assert parse_action_plan('```json\n[{"action": "wait", "ms": 100}]\n```') == [{"action": "wait", "ms": 100}]
    assert parse_action_plan('{"action": "wait"}') is None
    assert parse_action_plan("[{") is None
