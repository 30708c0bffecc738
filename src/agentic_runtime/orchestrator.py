# orchestrator.py
# Lifecycle state machine for one goal-pursuit run.
#
# The orchestrator is the kernel. The planner is a passive oracle; this
# class owns all control flow, state and the run log.
#
# Control flow per attempt:
#   Planning → Validating ─┬─ executable → Simulating → Executing → Reflecting → Deciding
#                          └─ rejected   ─────────────────────────→ Reflecting → Deciding
#   Deciding → Planning (replan) | Succeeded | Failed
#
# Given the same planner outputs the machine always takes the same path.

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict

from agentic_runtime import display
from agentic_runtime.errors import LifecycleExhausted, PlannerUnavailable, time_left
from agentic_runtime.executor import Approver, Executor
from agentic_runtime.models import ExecutionResult, Feedback, ParseFailure, Plan, Verdict
from agentic_runtime.parsing import extract_plan
from agentic_runtime.planner import ErrorAnalyzer, Planner
from agentic_runtime.reflector import Reflector, RunLog
from agentic_runtime.registry import ToolRegistry
from agentic_runtime.simulator import Simulator
from agentic_runtime.validator import has_blocking, validate


class LifecycleState(str, Enum):
    PLANNING = "planning"
    VALIDATING = "validating"
    SIMULATING = "simulating"
    EXECUTING = "executing"
    REFLECTING = "reflecting"
    DECIDING = "deciding"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    PLANNER_FAILED = "planner_failed"
    SIMULATED = "simulated"


class Decision(str, Enum):
    REPLAN = "replan"
    SUCCEED = "succeed"
    EXHAUSTED = "exhausted"
    PLANNER_FAILED = "planner_failed"
    STOP_SIMULATED = "stop_simulated"


class RunOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: RunStatus
    attempts: int
    reason: str
    run_log: RunLog
    final_plan: Plan | None = None
    states: tuple[LifecycleState, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    def raise_for_status(self) -> None:
        if self.status is RunStatus.EXHAUSTED:
            raise LifecycleExhausted(self.reason)
        if self.status is RunStatus.PLANNER_FAILED:
            raise PlannerUnavailable(self.reason)


# ---------------------------------------------------------------------------
# Deciding
# ---------------------------------------------------------------------------


def attempt_succeeded(feedback: Feedback) -> bool:
    """Every ToolStep ran and exited 0, and nothing blocked the plan."""
    if feedback.verdict is not Verdict.EXECUTED or feedback.plan is None:
        return False
    results = {r.step_index: r for r in feedback.execution_results}
    return all(
        step.index in results and results[step.index].success
        for step in feedback.plan.tool_steps
    )


def decide(
    feedback: Feedback,
    consecutive_parse_failures: int,
    max_attempts: int,
    parse_failure_limit: int = 2,
) -> Decision:
    if feedback.verdict is Verdict.SIMULATED:
        return Decision.STOP_SIMULATED
    if attempt_succeeded(feedback):
        return Decision.SUCCEED
    if consecutive_parse_failures >= parse_failure_limit:
        return Decision.PLANNER_FAILED
    if feedback.plan_attempt_index >= max_attempts:
        return Decision.EXHAUSTED
    return Decision.REPLAN


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class Orchestrator:
    """
    Drives a goal through plan → validate → simulate → execute → reflect,
    replanning until success, the attempt cap, or a broken planner.

    Example:
        orchestrator = Orchestrator(registry, planner=LLMPlanner(registry, "qwen3:8b"),
                                    replanner=LLMReplanner(registry, "qwen3:8b"))
        outcome = orchestrator.run("check repo state")
        outcome.raise_for_status()
    """

    def __init__(
        self,
        registry: ToolRegistry,
        planner: Planner,
        replanner: Planner | None = None,
        *,
        max_attempts: int = 3,
        parse_failure_limit: int = 2,
        attempt_timeout: float | None = None,
        dry_run: bool = False,
        approve: Approver | None = None,
        analyzer: ErrorAnalyzer | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._registry = registry
        self._planner = planner
        self._replanner = replanner or planner
        self._analyzer = analyzer
        self._max_attempts = max_attempts
        self._parse_failure_limit = parse_failure_limit
        self._attempt_timeout = attempt_timeout
        self._dry_run = dry_run
        self._simulator = Simulator(registry)
        self._executor = Executor(registry, approve=approve)
        self._states: list[LifecycleState] = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enter(self, state: LifecycleState) -> None:
        self._states.append(state)

    def _deadline(self) -> float | None:
        if self._attempt_timeout is None:
            return None
        return time.monotonic() + self._attempt_timeout

    def _plan(self, goal: str, run_log: RunLog, source: str, deadline: float | None) -> dict | ParseFailure:
        oracle = self._planner if source == "planner" else self._replanner
        display.calling_planner(source)
        response = oracle.propose(goal, run_log.snapshot(), deadline)
        if isinstance(response, ParseFailure):
            return response
        remaining = time_left(deadline)
        if remaining is not None and remaining <= 0:
            return ParseFailure(reason=f"The {source} answered after the attempt deadline.")
        return extract_plan(response)

    # ------------------------------------------------------------------
    # One attempt
    # ------------------------------------------------------------------

    def _attempt(self, goal: str, attempt: int, reflector: Reflector, run_log: RunLog) -> Feedback:
        source = "planner" if attempt == 1 else "replanner"
        deadline = self._deadline()
        display.attempt_start(attempt, source)

        self._enter(LifecycleState.PLANNING)
        candidate = self._plan(goal, run_log, source, deadline)
        if isinstance(candidate, ParseFailure):
            display.planner_unparseable(candidate)
            self._enter(LifecycleState.REFLECTING)
            return reflector.reflect_unparseable(goal, attempt, candidate)

        self._enter(LifecycleState.VALIDATING)
        plan, diagnostics = validate(candidate, self._registry, attempt=attempt, source=source)
        display.plan_parsed(plan)

        if has_blocking(diagnostics):
            display.plan_rejected(diagnostics)
            self._enter(LifecycleState.REFLECTING)
            return reflector.reflect(goal, plan, diagnostics)

        display.plan_accepted()

        self._enter(LifecycleState.SIMULATING)
        simulations = self._simulator.simulate(plan)
        display.simulation(simulations)

        if self._dry_run:
            display.dry_run_stop()
            self._enter(LifecycleState.REFLECTING)
            return reflector.reflect(goal, plan, diagnostics, simulations, dry_run=True)

        self._enter(LifecycleState.EXECUTING)
        executions = self._executor.execute(plan, deadline)

        self._enter(LifecycleState.REFLECTING)
        analyses = self._analyze(plan, executions, deadline)
        return reflector.reflect(
            goal, plan, diagnostics, simulations, executions, analyses=analyses
        )

    def _analyze(
        self,
        plan: Plan,
        executions: list[ExecutionResult],
        deadline: float | None,
    ) -> dict[int, str]:
        """Ask the error analyzer about every tool step that ran or faulted without success."""
        if self._analyzer is None:
            return {}
        steps = {step.index: step for step in plan.tool_steps}
        analyses: dict[int, str] = {}
        for result in executions:
            step = steps.get(result.step_index)
            if step is None or result.success or result.skipped:
                continue
            analysis = self._analyzer.analyze(step, result, deadline)
            if analysis:
                display.error_analysis(step, analysis)
                analyses[step.index] = analysis
        return analyses

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, goal: str) -> RunOutcome:
        """
        Pursue `goal` until a terminal state.

        Always returns a RunOutcome; call raise_for_status() to turn terminal
        failures into LifecycleExhausted / PlannerUnavailable.
        """
        run_log = RunLog()
        reflector = Reflector(run_log)
        self._states = []
        consecutive_parse_failures = 0
        attempt = 0

        display.run_started(goal, self._max_attempts)

        while True:
            attempt += 1
            feedback = self._attempt(goal, attempt, reflector, run_log)

            if feedback.verdict is Verdict.UNPARSEABLE:
                consecutive_parse_failures += 1
            else:
                consecutive_parse_failures = 0

            self._enter(LifecycleState.DECIDING)
            decision = decide(
                feedback,
                consecutive_parse_failures,
                self._max_attempts,
                self._parse_failure_limit,
            )
            if decision is not Decision.REPLAN:
                return self._finish(decision, attempt, run_log)

    def _finish(self, decision: Decision, attempt: int, run_log: RunLog) -> RunOutcome:
        if decision is Decision.SUCCEED:
            status, reason = RunStatus.SUCCEEDED, f"Goal achieved at attempt {attempt}."
        elif decision is Decision.STOP_SIMULATED:
            status, reason = RunStatus.SIMULATED, f"Dry run stopped after simulating attempt {attempt}."
        elif decision is Decision.PLANNER_FAILED:
            status = RunStatus.PLANNER_FAILED
            reason = (
                f"Planner returned {self._parse_failure_limit} unparseable responses in a row "
                f"(last at attempt {attempt})."
            )
        else:
            status = RunStatus.EXHAUSTED
            reason = f"Attempt cap of {self._max_attempts} reached without success."

        terminal = LifecycleState.FAILED
        if status in (RunStatus.SUCCEEDED, RunStatus.SIMULATED):
            terminal = LifecycleState.SUCCEEDED
        self._enter(terminal)
        display.run_finished(status.value, attempt, reason)

        latest = run_log.latest
        return RunOutcome(
            status=status,
            attempts=attempt,
            reason=reason,
            run_log=run_log,
            final_plan=latest.plan if latest else None,
            states=tuple(self._states),
        )
