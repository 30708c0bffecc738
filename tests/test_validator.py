import pytest
from pydantic import ValidationError

from conftest import tool_step

from agentic_runtime.models import DiagnosticKind, InfoStep, Plan, ToolStep
from agentic_runtime.validator import find_placeholders, has_blocking, is_executable, validate

UNKNOWN = DiagnosticKind.UNKNOWN_TOOL
MISSING = DiagnosticKind.MISSING_INPUT
PLACEHOLDER = DiagnosticKind.PLACEHOLDER_DETECTED
MALFORMED = DiagnosticKind.MALFORMED_STEP


def kinds(diagnostics):
    return [(d.kind, d.step_index) for d in diagnostics]


# ---------------------------------------------------------------------------
# Accepted plans
# ---------------------------------------------------------------------------


def test_valid_plan_has_no_diagnostics(registry):
    payload = {
        "plan": [
            {"type": "info", "text": "Check the repository first."},
            tool_step("git_status"),
            tool_step("echo", message="done"),
        ]
    }
    plan, diagnostics = validate(payload, registry, attempt=2, source="replanner")

    assert diagnostics == []
    assert is_executable(diagnostics)
    assert not has_blocking(diagnostics)
    assert [type(s) for s in plan.steps] == [InfoStep, ToolStep, ToolStep]
    assert [s.index for s in plan.steps] == [0, 1, 2]
    assert plan.attempt == 2
    assert plan.source == "replanner"
    assert plan.steps[2].inputs == {"message": "done"}
    assert plan.steps[2].rationale == "use echo"


def test_non_string_inputs_are_rendered_as_text(registry):
    plan, diagnostics = validate(
        {"plan": [{"type": "tool", "tool": "echo", "inputs": {"message": 3, "flag": True}}]},
        registry,
    )
    assert diagnostics == []
    assert plan.steps[0].inputs == {"message": "3", "flag": "true"}


# ---------------------------------------------------------------------------
# Tool existence / required inputs
# ---------------------------------------------------------------------------


def test_unknown_tool(registry):
    plan, diagnostics = validate({"plan": [tool_step("delete_everything")]}, registry)

    assert kinds(diagnostics) == [(UNKNOWN, 0)]
    assert "delete_everything" in diagnostics[0].message
    assert "git_status" in diagnostics[0].hint
    assert plan.steps[0].tool_name == "delete_everything"
    assert not is_executable(diagnostics)


def test_one_missing_input_diagnostic_per_key(registry):
    _, diagnostics = validate({"plan": [tool_step("write_file")]}, registry)

    assert kinds(diagnostics) == [(MISSING, 0), (MISSING, 0)]
    assert "'content'" in diagnostics[0].message
    assert "'path'" in diagnostics[1].message


@pytest.mark.parametrize("value", ["", "   "])
def test_empty_input_counts_as_missing(registry, value):
    _, diagnostics = validate({"plan": [tool_step("echo", message=value)]}, registry)
    assert kinds(diagnostics) == [(MISSING, 0)]


# ---------------------------------------------------------------------------
# Placeholder detection
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "step",
    [
        tool_step("echo", message="<file>"),
        tool_step("write_file", path="<file>", content="hello"),
        tool_step("git_status", path="<file>"),
    ],
)
def test_file_placeholder_yields_exactly_one_diagnostic(registry, step):
    _, diagnostics = validate({"plan": [step]}, registry)

    placeholders = [d for d in diagnostics if d.kind is PLACEHOLDER]
    assert len(placeholders) == 1
    assert "'<file>'" in placeholders[0].message
    assert has_blocking(diagnostics)


def test_placeholder_checked_even_for_unknown_tool(registry):
    _, diagnostics = validate({"plan": [tool_step("mystery", path="<file>")]}, registry)
    assert kinds(diagnostics) == [(UNKNOWN, 0), (PLACEHOLDER, 0)]


def test_precedence_within_a_step(registry):
    step = tool_step("write_file", path="$output[git_status]")
    _, diagnostics = validate({"plan": [step]}, registry)
    assert kinds(diagnostics) == [(MISSING, 0), (PLACEHOLDER, 0)]


def test_placeholder_alone_is_blocking_but_structurally_executable(registry):
    _, diagnostics = validate({"plan": [tool_step("echo", message="<DYNAMIC>")]}, registry)
    assert is_executable(diagnostics)
    assert has_blocking(diagnostics)


@pytest.mark.parametrize(
    "value, tokens",
    [
        ("<file>", ["<file>"]),
        ("cat <path to file>", ["<path to file>"]),
        ("$output[git_status]", ["$output[git_status]"]),
        ("commit to {{ branch }}", ["{{ branch }}"]),
        ("<a> and <a> and $steps[1]", ["<a>", "$steps[1]"]),
    ],
)
def test_find_placeholders(value, tokens):
    assert find_placeholders(value) == tokens


@pytest.mark.parametrize(
    "value",
    [
        "a < b",
        "if a<b and c>d",
        "List<String>",
        "cat <<EOF",
        "make 2>&1 | tee log.txt",
        "sort <input.txt >out.txt",
        "x -> y",
        "echo '<' > out.txt",
        "echo ${HOME}",
        '{"key": "value"}',
        "<html><body><p>Hello</p></body></html>",
        "<b>bold</b> text",
        "<ul>\n<li>one</li>\n</ul>",
        "<P>Mixed case</p>",
        '<svg><path d="M0 0"/></svg>',
    ],
)
def test_legitimate_angle_brackets_are_not_placeholders(registry, value):
    assert find_placeholders(value) == []
    _, diagnostics = validate({"plan": [tool_step("echo", message=value)]}, registry)
    assert diagnostics == []


def test_unclosed_token_inside_markup_is_still_a_placeholder(registry):
    value = "<html><body><p>Saved to <file></p></body></html>"

    assert find_placeholders(value) == ["<file>"]
    _, diagnostics = validate(
        {"plan": [tool_step("write_file", path="index.html", content=value)]}, registry
    )
    assert kinds(diagnostics) == [(PLACEHOLDER, 0)]


def test_info_step_text_is_not_scanned(registry):
    _, diagnostics = validate({"plan": [{"type": "info", "text": "Edit <file> next"}]}, registry)
    assert diagnostics == []


# ---------------------------------------------------------------------------
# Structural checks
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, fragment",
    [
        ({"type": "shell", "cmd": "ls"}, 'Unknown step type "shell"'),
        ("git_status", "not an object"),
        ({"tool": "git_status"}, 'no "type"'),
        ({"type": 7}, "must be a string"),
        ({"type": "tool", "inputs": {}}, 'no "tool" name'),
        ({"type": "tool", "tool": "echo", "inputs": ["hi"]}, 'non-object "inputs"'),
        ({"type": "info"}, 'no "text"'),
    ],
)
def test_malformed_step_is_dropped_and_recorded(registry, raw, fragment):
    payload = {"plan": [tool_step("git_status"), raw, tool_step("echo", message="ok")]}
    plan, diagnostics = validate(payload, registry)

    assert kinds(diagnostics) == [(MALFORMED, 1)]
    assert fragment in diagnostics[0].message
    assert [s.index for s in plan.steps] == [0, 2]
    assert [d.index for d in plan.dropped] == [1]
    assert not is_executable(diagnostics)


def test_payload_without_plan_list(registry):
    plan, diagnostics = validate({"steps": []}, registry)
    assert kinds(diagnostics) == [(MALFORMED, 0)]
    assert plan.steps == ()


def test_diagnostics_follow_step_order(registry):
    payload = {
        "plan": [
            tool_step("echo", message="<msg>"),
            {"type": "bogus"},
            tool_step("nope"),
        ]
    }
    _, diagnostics = validate(payload, registry)
    assert kinds(diagnostics) == [(PLACEHOLDER, 0), (MALFORMED, 1), (UNKNOWN, 2)]


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


def test_revalidating_a_plan_is_idempotent(registry):
    payload = {
        "plan": [
            tool_step("write_file", path="<file>"),
            {"type": "bogus"},
            tool_step("delete_everything"),
            {"type": "info", "text": "note"},
        ]
    }
    plan, first = validate(payload, registry, attempt=3, source="replanner")
    again_plan, second = validate(plan, registry)
    _, third = validate(again_plan, registry)

    assert first == second == third
    assert again_plan == plan


def test_validated_plan_is_frozen(registry):
    plan, _ = validate({"plan": [tool_step("git_status")]}, registry)
    with pytest.raises(ValidationError):
        plan.steps[0].tool_name = "other"
    assert isinstance(plan, Plan)
