# validator.py
# Turns an untrusted candidate plan into a Plan plus ordered Diagnostics.
#
# Two phases:
#   1. structural parse: each raw step becomes a ToolStep, an InfoStep, or a
#      DroppedStep (MalformedStep diagnostic)
#   2. per-step checks, in precedence order:
#      tool existence → required inputs → placeholder detection
#
# The parse is best-effort: the returned Plan holds every step that was
# understood, even when diagnostics are present.

import json
import re
from typing import Any, Iterable

from agentic_runtime.models import (
    Diagnostic,
    DiagnosticKind,
    DroppedStep,
    InfoStep,
    Plan,
    ToolStep,
)
from agentic_runtime.registry import ToolRegistry

STEP_SHAPE_HINT = (
    'Each step must be {"type": "tool", "tool": "<tool name>", "inputs": {...}} '
    'or {"type": "info", "text": "..."}.'
)
PLACEHOLDER_HINT = (
    "Replace placeholders with concrete values. Outputs of earlier steps are "
    "not substituted into later inputs."
)

_ANGLE_TOKEN = re.compile(r"(?<![\w<])<([A-Za-z_][\w\-]*)(?: [\w\-]+)*>")

# Unresolved template tokens. Values like "a < b", "List<String>", "2>&1",
# "cat <<EOF" or "<p>text</p>" must pass untouched.
PLACEHOLDER_PATTERNS: tuple[re.Pattern, ...] = (
    # <file>, <DYNAMIC>, <path to file>
    _ANGLE_TOKEN,
    # $output[git_status], $steps[0]
    re.compile(r"\$(?:outputs?|results?|steps?)\[[^\]]*\]"),
    # {{ branch_name }}
    re.compile(r"\{\{[^{}]*\}\}"),
)

_MALFORMED = DiagnosticKind.MALFORMED_STEP
_STRUCTURAL_KINDS = frozenset(
    {DiagnosticKind.UNKNOWN_TOOL, DiagnosticKind.MISSING_INPUT, DiagnosticKind.MALFORMED_STEP}
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_markup_tag(token: str, value: str) -> bool:
    """An opening tag like <p> whose </p> also appears in `value`."""
    name = _ANGLE_TOKEN.fullmatch(token).group(1)
    return f"</{name.lower()}>" in value.lower()


def find_placeholders(value: str) -> list[str]:
    """Return distinct placeholder tokens in `value`, in order of appearance."""
    found: list[tuple[int, str]] = []
    for pattern in PLACEHOLDER_PATTERNS:
        found.extend(
            (m.start(), m.group(0))
            for m in pattern.finditer(value)
            if not (pattern is _ANGLE_TOKEN and _is_markup_tag(m.group(0), value))
        )
    tokens: list[str] = []
    for _, token in sorted(found):
        if token not in tokens:
            tokens.append(token)
    return tokens


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def is_executable(diagnostics: Iterable[Diagnostic]) -> bool:
    """True when no structural diagnostic (UnknownTool, MissingInput, MalformedStep) exists."""
    return not any(d.kind in _STRUCTURAL_KINDS for d in diagnostics)


def has_blocking(diagnostics: Iterable[Diagnostic]) -> bool:
    return any(d.blocking for d in diagnostics)


# ---------------------------------------------------------------------------
# Phase 1: structural parse
# ---------------------------------------------------------------------------


def _parse_step(index: int, raw: Any) -> ToolStep | InfoStep | DroppedStep:
    if not isinstance(raw, dict):
        return DroppedStep(index=index, reason=f"Step is a {type(raw).__name__}, not an object.")

    kind = raw.get("type")
    if kind is None:
        return DroppedStep(index=index, reason='Step has no "type" field.')
    if not isinstance(kind, str):
        return DroppedStep(index=index, reason='Step field "type" must be a string.')

    if kind == "tool":
        name = raw.get("tool")
        if not isinstance(name, str) or not name.strip():
            return DroppedStep(index=index, reason='Tool step has no "tool" name.')
        inputs = raw.get("inputs")
        if inputs is None:
            inputs = {}
        if not isinstance(inputs, dict):
            return DroppedStep(index=index, reason=f'Tool step "{name}" has non-object "inputs".')
        return ToolStep(
            index=index,
            tool_name=name.strip(),
            inputs={str(key): _as_text(value) for key, value in inputs.items()},
            rationale=_as_text(raw.get("rationale") or raw.get("description")),
        )

    if kind == "info":
        text = raw.get("text")
        if not isinstance(text, str):
            return DroppedStep(index=index, reason='Info step has no "text".')
        return InfoStep(index=index, text=text)

    return DroppedStep(index=index, reason=f'Unknown step type "{kind}"; expected "tool" or "info".')


def _entries_from_payload(candidate: Any) -> list[ToolStep | InfoStep | DroppedStep]:
    if isinstance(candidate, dict):
        steps = candidate.get("plan")
    else:
        steps = candidate
    if not isinstance(steps, list):
        return [DroppedStep(index=0, reason='Payload has no "plan" list.')]
    return [_parse_step(index, raw) for index, raw in enumerate(steps)]


def _entries_from_plan(plan: Plan) -> list[ToolStep | InfoStep | DroppedStep]:
    entries: list = [*plan.steps, *plan.dropped]
    return sorted(entries, key=lambda entry: entry.index)


# ---------------------------------------------------------------------------
# Phase 2: per-step checks
# ---------------------------------------------------------------------------


def _check_tool_step(step: ToolStep, registry: ToolRegistry) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    spec = registry.lookup(step.tool_name)

    if spec is None:
        known = ", ".join(s.name for s in registry.all()) or "(none)"
        diagnostics.append(
            Diagnostic(
                kind=DiagnosticKind.UNKNOWN_TOOL,
                step_index=step.index,
                message=f"Step {step.index}: tool '{step.tool_name}' is not registered.",
                hint=f"Use one of the registered tools: {known}.",
            )
        )
    else:
        for key in sorted(spec.required_inputs):
            if not step.inputs.get(key, "").strip():
                diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.MISSING_INPUT,
                        step_index=step.index,
                        message=(
                            f"Step {step.index}: tool '{step.tool_name}' requires input "
                            f"'{key}', which is missing or empty."
                        ),
                        hint=f'Provide a concrete value for "{key}".',
                    )
                )

    for key, value in step.inputs.items():
        tokens = find_placeholders(value)
        if tokens:
            quoted = ", ".join(f"'{token}'" for token in tokens)
            diagnostics.append(
                Diagnostic(
                    kind=DiagnosticKind.PLACEHOLDER_DETECTED,
                    step_index=step.index,
                    message=(
                        f"Step {step.index}: input '{key}' of tool '{step.tool_name}' "
                        f"contains unresolved placeholder {quoted}."
                    ),
                    hint=PLACEHOLDER_HINT,
                )
            )
    return diagnostics


def validate(
    candidate: Any,
    registry: ToolRegistry,
    *,
    attempt: int = 1,
    source: str = "planner",
) -> tuple[Plan, list[Diagnostic]]:
    """
    Validate a raw payload ({"plan": [...]}) or an existing Plan.

    Re-validating a returned Plan yields the same diagnostics, since dropped
    steps travel with it.
    """
    if isinstance(candidate, Plan):
        entries = _entries_from_plan(candidate)
        attempt, source = candidate.attempt, candidate.source
    else:
        entries = _entries_from_payload(candidate)

    diagnostics: list[Diagnostic] = []
    for entry in entries:
        if isinstance(entry, DroppedStep):
            diagnostics.append(
                Diagnostic(
                    kind=_MALFORMED,
                    step_index=entry.index,
                    message=f"Step {entry.index}: {entry.reason}",
                    hint=STEP_SHAPE_HINT,
                )
            )
        elif isinstance(entry, ToolStep):
            diagnostics.extend(_check_tool_step(entry, registry))

    plan = Plan(
        steps=tuple(e for e in entries if not isinstance(e, DroppedStep)),
        dropped=tuple(e for e in entries if isinstance(e, DroppedStep)),
        attempt=attempt,
        source=source,
    )
    return plan, diagnostics
