import pytest

from agentic_runtime.models import ParseFailure
from agentic_runtime.parsing import extract_plan, strip_reasoning

# ---------------------------------------------------------------------------
# Extraction from noisy oracle output
# ---------------------------------------------------------------------------


def test_bare_json():
    payload = extract_plan('{"plan": [{"type": "info", "text": "hi"}]}')
    assert payload == {"plan": [{"type": "info", "text": "hi"}]}


def test_json_surrounded_by_prose():
    response = """Sure! Here's what I'll do.
    {"plan": [{"type": "tool", "tool": "git_status", "inputs": {}}]}
    Hope that helps."""
    payload = extract_plan(response)
    assert payload["plan"][0]["tool"] == "git_status"


def test_code_fence():
    response = """```json
{
  "plan": [{"type": "tool", "tool": "echo", "inputs": {"message": "done"}}]
}
```"""
    payload = extract_plan(response)
    assert payload["plan"][0]["inputs"] == {"message": "done"}


def test_reasoning_trace_is_ignored():
    response = """<think>
Maybe {"plan": [{"type": "tool", "tool": "rm_rf", "inputs": {}}]}? No, too risky.
</think>
{"plan": [{"type": "tool", "tool": "git_status", "inputs": {}}]}"""
    payload = extract_plan(response)
    assert payload["plan"][0]["tool"] == "git_status"


def test_first_plan_shaped_object_wins():
    response = '{"note": "context"} then {"plan": []} and later {"plan": [{"type": "info", "text": "x"}]}'
    assert extract_plan(response) == {"plan": []}


def test_nested_plan_object_is_found():
    response = '{"answer": {"plan": [{"type": "info", "text": "inner"}]}}'
    assert extract_plan(response) == {"plan": [{"type": "info", "text": "inner"}]}


def test_literal_newline_inside_string_is_tolerated():
    response = '{"plan": [{"type": "info", "text": "line one\nline two"}]}'
    payload = extract_plan(response)
    assert payload["plan"][0]["text"] == "line one\nline two"


# ---------------------------------------------------------------------------
# Failures are values, never exceptions
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("response", [None, "", "   \n"])
def test_empty_response(response):
    result = extract_plan(response)
    assert isinstance(result, ParseFailure)
    assert "empty" in result.reason


@pytest.mark.parametrize(
    "response",
    [
        "I cannot help with that.",
        '{"steps": [{"tool": "echo"}]}',
        '{"plan": "git_status"}',
        '{"plan": [ broken json',
        "<think>{\"plan\": []} is what I would say, but",
    ],
)
def test_unparseable_response(response):
    result = extract_plan(response)
    assert isinstance(result, ParseFailure)
    assert '"plan" list' in result.reason


def test_failure_keeps_truncated_excerpt():
    result = extract_plan("x" * 1000)
    assert isinstance(result, ParseFailure)
    assert len(result.raw) <= 201


def test_strip_reasoning_removes_tags_case_insensitively():
    assert strip_reasoning("<THINKING>secret</THINKING>visible").strip() == "visible"
