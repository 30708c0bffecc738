import json

import pytest

from agentic_runtime import display
from agentic_runtime.models import ToolOutcome
from agentic_runtime.registry import ToolRegistry


class StubTool:
    """Recording tool double. Every predict/execute call lands in `journal`."""

    def __init__(
        self,
        name,
        required=(),
        exit_status=0,
        stdout="",
        stderr="",
        mutates=False,
        raises=None,
        journal=None,
    ):
        self._name = name
        self._required = set(required)
        self._outcome = ToolOutcome(exit_status=exit_status, stdout=stdout, stderr=stderr)
        self._raises = raises
        self.mutates = mutates
        self.description = f"stub {name}"
        self.journal = journal if journal is not None else []
        self.calls = []

    def name(self):
        return self._name

    def required_inputs(self):
        return set(self._required)

    def execute(self, inputs):
        self.calls.append(dict(inputs))
        self.journal.append(("execute", self._name))
        if self._raises is not None:
            raise self._raises
        return self._outcome

    def predict(self, inputs):
        self.journal.append(("predict", self._name))
        return f"{self._name} would run with {sorted(inputs)}"


class ScriptedPlanner:
    """Returns canned responses in order; repeats the last one when exhausted."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def propose(self, goal, run_log, deadline=None):
        self.calls.append({"goal": goal, "run_log": tuple(run_log), "deadline": deadline})
        if len(self._responses) > 1:
            return self._responses.pop(0)
        return self._responses[0]


def plan_text(*steps, prose=True):
    payload = json.dumps({"plan": list(steps)}, indent=2)
    if prose:
        return f"Here is my plan:\n```json\n{payload}\n```\nLet me know if you need changes."
    return payload


def tool_step(tool, **inputs):
    return {"type": "tool", "tool": tool, "inputs": inputs, "rationale": f"use {tool}"}


@pytest.fixture(autouse=True)
def quiet_display():
    display.set_quiet(True)
    yield
    display.set_quiet(False)


@pytest.fixture
def journal():
    return []


@pytest.fixture
def make_tool(journal):
    def _make(name, **kwargs):
        kwargs.setdefault("journal", journal)
        return StubTool(name, **kwargs)

    return _make


@pytest.fixture
def registry(make_tool):
    reg = ToolRegistry()
    reg.add(make_tool("git_status"))
    reg.add(make_tool("echo", required=["message"]))
    reg.add(make_tool("write_file", required=["path", "content"], mutates=True))
    return reg
