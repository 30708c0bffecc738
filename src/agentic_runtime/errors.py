# errors.py
# Exception taxonomy for the lifecycle engine, plus the deadline guard shared
# by the planner and the executor.
#
# Recoverable conditions (unparseable oracle output, validation diagnostics,
# non-zero tool exits) are values, not exceptions. See models.py.

import time


class DuplicateToolError(Exception):
    """Raised when a tool name is registered twice."""


class ExecutionFault(Exception):
    """Raised when a tool cannot be invoked at all. Fatal for the step."""


class DeadlineExceeded(ExecutionFault):
    """Raised when an attempt runs past its deadline."""


class LifecycleExhausted(Exception):
    """Raised when a run reaches its attempt cap without succeeding."""


class PlannerUnavailable(Exception):
    """Raised when the planner keeps returning unparseable responses."""


def time_left(deadline: float | None) -> float | None:
    """Seconds until `deadline` (a time.monotonic() value), or None if unbounded."""
    if deadline is None:
        return None
    return deadline - time.monotonic()


def check_deadline(deadline: float | None, what: str) -> None:
    remaining = time_left(deadline)
    if remaining is not None and remaining <= 0:
        raise DeadlineExceeded(f"Deadline exceeded before {what}.")
