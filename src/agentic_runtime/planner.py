# planner.py
# Planner / replanner oracles, plus the optional error analyzer.
#
# The orchestrator only depends on the Planner protocol. LLMPlanner and
# LLMReplanner are the bundled implementations: any OpenAI-compatible chat
# endpoint (Ollama by default). They return raw text for the orchestrator to
# extract a plan from, or a ParseFailure when the call itself fails.
#
# ErrorAnalyzer uses the same transport to explain failed tool steps. A call
# that fails yields no analysis; it never fails the attempt.

import json
from typing import Protocol, Sequence

from openai import OpenAI, OpenAIError

from agentic_runtime.errors import time_left
from agentic_runtime.models import ExecutionResult, Feedback, ParseFailure, ToolSpec, ToolStep
from agentic_runtime.parsing import strip_reasoning
from agentic_runtime.registry import ToolRegistry


class Planner(Protocol):
    def propose(
        self,
        goal: str,
        run_log: Sequence[Feedback],
        deadline: float | None = None,
    ) -> str | ParseFailure: ...


# ---------------------------------------------------------------------------
# System Prompts
# ---------------------------------------------------------------------------

PLANNER_SYSTEM_PROMPT = """\
You are the planning component of an autonomous agent runtime.

Turn the user's goal into a short sequence of tool invocations. Respond with \
ONLY a JSON object that matches this exact schema:

{
  "plan": [
    {
      "type": "tool",
      "tool": "tool_name",
      "inputs": {"input_name": "value"},
      "rationale": "what this step does and why"
    },
    {"type": "info", "text": "an optional note for the operator"}
  ]
}

Steps run in order. A step whose tool exits non-zero is reported back to you.\
"""

INPUT_RULES = """\
CRITICAL RULE FOR INPUTS:
Every input value must be concrete and final. Outputs of earlier steps are NOT \
substituted into later inputs, so never use placeholders such as <file>, \
$output[tool_name] or {{variable}}. Plans containing them are rejected.\
"""

REPLANNER_SYSTEM_PROMPT = """\
You are the replanning component of an autonomous agent runtime.

Earlier plans for the goal below were rejected or failed. The feedback for \
each attempt is given in order. Produce a corrected plan that avoids the \
reported problems, in the same JSON format:

{"plan": [{"type": "tool", "tool": "tool_name", "inputs": {...}, "rationale": "..."}]}

If the feedback shows the goal is already achieved, respond with {"plan": []}.\
"""


def describe_tools(specs: Sequence[ToolSpec]) -> str:
    lines: list[str] = []
    for spec in specs:
        required = ", ".join(sorted(spec.required_inputs)) or "none"
        line = f"- {spec.name}: {spec.description or 'no description'} (required inputs: {required})"
        if spec.output_schema:
            line += f" → {spec.output_schema}"
        lines.append(line)
    return "\n".join(lines) or "- (no tools registered)"


def format_run_log(run_log: Sequence[Feedback]) -> str:
    return "\n\n".join(
        f"[attempt {entry.plan_attempt_index} · {entry.verdict.value}]\n{entry.narrative_summary}"
        for entry in run_log
    )


# ---------------------------------------------------------------------------
# LLM-backed oracles
# ---------------------------------------------------------------------------


def _complete(client: OpenAI, model: str, messages: list[dict], timeout: float | None) -> str:
    options = {} if timeout is None else {"timeout": timeout}
    response = client.chat.completions.create(model=model, messages=messages, **options)
    return (response.choices[0].message.content or "").strip()


class LLMPlanner:
    """
    First-attempt planner backed by a chat-completions model.

    Example:
        planner = LLMPlanner(registry, model="qwen3:8b",
                             base_url="http://localhost:11434/v1", api_key="ollama")
        raw = planner.propose("check repo state", run_log=())
    """

    system_prompt = PLANNER_SYSTEM_PROMPT

    def __init__(
        self,
        registry: ToolRegistry,
        model: str,
        client: OpenAI | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self._registry = registry
        self._model = model
        self._client = client or OpenAI(base_url=base_url, api_key=api_key)

    def messages(self, goal: str, run_log: Sequence[Feedback]) -> list[dict]:
        system = (
            f"{self.system_prompt}\n\n"
            f"Available tools:\n{describe_tools(self._registry.all())}\n\n"
            f"{INPUT_RULES}"
        )
        user = f"Goal:\n{goal}"
        if run_log:
            user += f"\n\nFeedback from previous attempts:\n{format_run_log(run_log)}"
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    def propose(
        self,
        goal: str,
        run_log: Sequence[Feedback],
        deadline: float | None = None,
    ) -> str | ParseFailure:
        remaining = time_left(deadline)
        if remaining is not None and remaining <= 0:
            return ParseFailure(reason="Deadline exceeded before the planner was called.")
        try:
            return _complete(self._client, self._model, self.messages(goal, run_log), remaining)
        except OpenAIError as exc:
            return ParseFailure(reason=f"Planner call failed: {exc}")


class LLMReplanner(LLMPlanner):
    """Follow-up planner: same transport, prompt built around prior Feedback."""

    system_prompt = REPLANNER_SYSTEM_PROMPT


# ---------------------------------------------------------------------------
# Error analysis
# ---------------------------------------------------------------------------

ERROR_ANALYZER_SYSTEM_PROMPT = """\
You are an expert system administrator and developer. A step of an automated \
plan failed. Say briefly what went wrong, then give the exact commands that \
fix the problem AND complete the original operation, fix first, retry last.

Answer in at most four short lines of plain text.\
"""


def describe_failure(step: ToolStep, result: ExecutionResult) -> str:
    inputs = json.dumps(dict(step.inputs), ensure_ascii=False)
    lines = [f"Tool: {step.tool_name}", f"Inputs: {inputs}"]
    if result.fault is not None:
        lines.append(f"The tool could not be started: {result.fault}")
    elif result.signal is not None:
        lines.append(f"The process was terminated by signal {result.signal}.")
    else:
        lines.append(f"Exit status: {result.exit_status}")
    if result.stderr.strip():
        lines.append(f"Error output:\n{result.stderr.strip()[-2000:]}")
    if result.stdout.strip():
        lines.append(f"Output:\n{result.stdout.strip()[-2000:]}")
    return "\n".join(lines)


class ErrorAnalyzer:
    """
    Optional advisor asked about each failed tool step. Its answer is shown
    to the operator and appended to that attempt's feedback for the replanner.

    Example:
        analyzer = ErrorAnalyzer("qwen3:8b", base_url="http://localhost:11434/v1", api_key="ollama")
        analyzer.analyze(step, result)  # -> "git is not a repository here; run `git init` ..."
    """

    def __init__(
        self,
        model: str,
        client: OpenAI | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self._model = model
        self._client = client or OpenAI(base_url=base_url, api_key=api_key)

    def messages(self, step: ToolStep, result: ExecutionResult) -> list[dict]:
        return [
            {"role": "system", "content": ERROR_ANALYZER_SYSTEM_PROMPT},
            {"role": "user", "content": describe_failure(step, result)},
        ]

    def analyze(
        self,
        step: ToolStep,
        result: ExecutionResult,
        deadline: float | None = None,
    ) -> str | None:
        """Return the analysis text, or None when no analysis could be had."""
        remaining = time_left(deadline)
        if remaining is not None and remaining <= 0:
            return None
        try:
            text = strip_reasoning(
                _complete(self._client, self._model, self.messages(step, result), remaining)
            ).strip()
        except OpenAIError:
            return None
        return text or None
