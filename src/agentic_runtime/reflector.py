# reflector.py
# Run Log and template-based Feedback synthesis.
#
# The narrative written here is injected verbatim into the next planning
# attempt, so every failed, blocked or unrun step must be named in it.

from typing import Iterator, Mapping, Sequence

from agentic_runtime import display
from agentic_runtime.models import (
    Diagnostic,
    ExecutionResult,
    Feedback,
    ParseFailure,
    Plan,
    SimulationResult,
    Verdict,
)

PAYLOAD_REMINDER = (
    'Respond with one JSON object of the form {"plan": [...]} where each step is '
    '{"type": "tool", "tool": ..., "inputs": {...}} or {"type": "info", "text": ...}.'
)


def _tail(text: str, max_len: int = 300) -> str:
    text = text.strip()
    if len(text) > max_len:
        return "…" + text[-max_len:]
    return text


def _head(text: str, max_len: int = 500) -> str:
    text = " ".join(text.split())
    if len(text) > max_len:
        return text[:max_len] + "…"
    return text


# ---------------------------------------------------------------------------
# Run Log
# ---------------------------------------------------------------------------


class RunLog:
    """Append-only history of Feedback for one run, addressed by attempt index."""

    def __init__(self) -> None:
        self._entries: list[Feedback] = []

    def append(self, feedback: Feedback) -> None:
        if self._entries and feedback.plan_attempt_index <= self._entries[-1].plan_attempt_index:
            raise ValueError(
                f"Feedback for attempt {feedback.plan_attempt_index} cannot follow "
                f"attempt {self._entries[-1].plan_attempt_index}."
            )
        self._entries.append(feedback)

    def get(self, attempt: int) -> Feedback | None:
        for entry in self._entries:
            if entry.plan_attempt_index == attempt:
                return entry
        return None

    def snapshot(self) -> tuple[Feedback, ...]:
        return tuple(self._entries)

    @property
    def latest(self) -> Feedback | None:
        return self._entries[-1] if self._entries else None

    def __iter__(self) -> Iterator[Feedback]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Narrative templates
# ---------------------------------------------------------------------------


def _rejection_narrative(attempt: int, diagnostics: Sequence[Diagnostic]) -> str:
    blocking = [d for d in diagnostics if d.blocking]
    reasons = "; ".join(d.message for d in blocking)
    hints: list[str] = []
    for d in blocking:
        if d.hint and d.hint not in hints:
            hints.append(d.hint)
    narrative = f"Attempt {attempt}: plan rejected before execution, reason: {reasons}"
    if hints:
        narrative += "\nHow to fix: " + " ".join(hints)
    return narrative


def _execution_narrative(
    attempt: int,
    plan: Plan,
    simulations: Sequence[SimulationResult],
    executions: Sequence[ExecutionResult],
    analyses: Mapping[int, str],
) -> str:
    tools = {step.index: step.tool_name for step in plan.tool_steps}
    results = {r.step_index: r for r in executions if r.step_index in tools}
    failed = [r for r in results.values() if not r.success]
    not_run = [index for index in tools if index not in results]

    lines: list[str] = []
    if not failed and not not_run:
        lines.append(f"Attempt {attempt}: all {len(tools)} tool step(s) succeeded.")
    else:
        lines.append(f"Attempt {attempt}: plan executed with failures.")

    for r in failed:
        name = tools[r.step_index]
        if r.fault is not None:
            lines.append(f"- step {r.step_index} ({name}) could not be invoked: {r.fault}")
        elif r.skipped:
            lines.append(f"- step {r.step_index} ({name}) was declined by the operator.")
        elif r.signal is not None:
            lines.append(f"- step {r.step_index} ({name}) was terminated by signal {r.signal}.")
        else:
            detail = _tail(r.stderr) or _tail(r.stdout) or "no output"
            lines.append(f"- step {r.step_index} ({name}) exited with status {r.exit_status}: {detail}")
        if r.step_index in analyses:
            lines.append(f"  analysis: {_head(analyses[r.step_index])}")

    if not_run:
        listed = ", ".join(str(index) for index in not_run)
        lines.append(f"- step(s) {listed} were not run.")

    for s in simulations:
        if s.risk_flag:
            lines.append(f"- simulation flagged step {s.step_index}: {s.predicted_effect}")

    for r in results.values():
        if r.success and r.stdout.strip():
            lines.append(f"- output of step {r.step_index} ({tools[r.step_index]}): {_tail(r.stdout)}")

    return "\n".join(lines)


def _simulation_narrative(attempt: int, simulations: Sequence[SimulationResult]) -> str:
    lines = [f"Attempt {attempt}: dry run, plan validated and simulated; execution skipped."]
    for s in simulations:
        flag = " [risk]" if s.risk_flag else ""
        lines.append(f"- step {s.step_index}{flag}: {s.predicted_effect}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Reflector
# ---------------------------------------------------------------------------


class Reflector:
    """Builds one Feedback per attempt and appends it to the run log."""

    def __init__(self, run_log: RunLog) -> None:
        self._run_log = run_log

    def _record(self, feedback: Feedback) -> Feedback:
        self._run_log.append(feedback)
        display.feedback(feedback)
        return feedback

    def reflect(
        self,
        goal: str,
        plan: Plan,
        diagnostics: Sequence[Diagnostic] = (),
        simulations: Sequence[SimulationResult] = (),
        executions: Sequence[ExecutionResult] = (),
        *,
        analyses: Mapping[int, str] | None = None,
        dry_run: bool = False,
    ) -> Feedback:
        if any(d.blocking for d in diagnostics):
            verdict = Verdict.REJECTED
            narrative = _rejection_narrative(plan.attempt, diagnostics)
        elif dry_run:
            verdict = Verdict.SIMULATED
            narrative = _simulation_narrative(plan.attempt, simulations)
        else:
            verdict = Verdict.EXECUTED
            narrative = _execution_narrative(plan.attempt, plan, simulations, executions, analyses or {})

        return self._record(
            Feedback(
                goal=goal,
                plan_attempt_index=plan.attempt,
                verdict=verdict,
                plan=plan,
                diagnostics=tuple(diagnostics),
                simulations=tuple(simulations),
                execution_results=tuple(executions),
                narrative_summary=narrative,
            )
        )

    def reflect_unparseable(self, goal: str, attempt: int, failure: ParseFailure) -> Feedback:
        narrative = (
            f"Attempt {attempt}: planner response could not be parsed, reason: {failure.reason} "
            f"{PAYLOAD_REMINDER}"
        )
        return self._record(
            Feedback(
                goal=goal,
                plan_attempt_index=attempt,
                verdict=Verdict.UNPARSEABLE,
                narrative_summary=narrative,
            )
        )
