# executor.py
# Runs a validated plan against live tools, one step at a time, in plan order.
#
#   - InfoSteps are no-ops recorded with exit status 0.
#   - A tool that ran and exited non-zero is recorded and execution continues.
#   - A tool that could not be invoked (ExecutionFault, OSError, deadline)
#     is recorded as a fault and the rest of the plan is not run.
#
# success is exit_status == 0 and nothing else. A tool call that returns
# without raising has not thereby succeeded.

from typing import Callable

from agentic_runtime import display
from agentic_runtime.errors import ExecutionFault, check_deadline
from agentic_runtime.models import ExecutionResult, InfoStep, Plan, ToolOutcome, ToolStep
from agentic_runtime.registry import ToolRegistry

Approver = Callable[[ToolStep], bool]


class Executor:
    """
    Sequential step runner.

    `approve`, when given, is asked before every tool step; a declined step
    is recorded as skipped (and therefore unsuccessful) and execution moves on.
    """

    def __init__(self, registry: ToolRegistry, approve: Approver | None = None) -> None:
        self._registry = registry
        self._approve = approve

    def execute_step(self, step: ToolStep, deadline: float | None = None) -> ExecutionResult:
        try:
            check_deadline(deadline, f"step {step.index} ({step.tool_name})")
            tool = self._registry.tool(step.tool_name)
            if tool is None:
                raise ExecutionFault(f"No live implementation is registered for '{step.tool_name}'.")
        except ExecutionFault as exc:
            display.step_fault(step, str(exc))
            return ExecutionResult(step_index=step.index, fault=str(exc))

        if self._approve is not None and not self._approve(step):
            display.step_skipped(step)
            return ExecutionResult(step_index=step.index, skipped=True, stderr="Declined by operator.")

        try:
            outcome = tool.execute(dict(step.inputs))
        except (ExecutionFault, OSError) as exc:
            display.step_fault(step, str(exc))
            return ExecutionResult(step_index=step.index, fault=str(exc))

        if not isinstance(outcome, ToolOutcome):
            outcome = ToolOutcome.model_validate(outcome)
        result = ExecutionResult(
            step_index=step.index,
            exit_status=outcome.exit_status,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
        )
        display.step_result(result)
        return result

    def execute(self, plan: Plan, deadline: float | None = None) -> list[ExecutionResult]:
        """Execute every step of `plan` until the first fault."""
        results: list[ExecutionResult] = []
        total = len(plan.steps)
        display.execution_start(total)

        for position, step in enumerate(plan.steps):
            display.step_start(position, total, step)

            if isinstance(step, InfoStep):
                results.append(ExecutionResult(step_index=step.index, exit_status=0, stdout=step.text))
                continue

            result = self.execute_step(step, deadline)
            results.append(result)
            if result.fault is not None:
                break

        return results
