# run.py
# Entry point. Config and wiring only.
#
# Point AGENT_BASE_URL / AGENT_MODEL at any OpenAI-compatible endpoint.
# The default is a local Ollama server.

import sys

from rich.markup import escape
from rich.prompt import Confirm

from agentic_runtime import display
from agentic_runtime.config import Settings, load_settings
from agentic_runtime.models import ToolStep
from agentic_runtime.orchestrator import Orchestrator, RunOutcome
from agentic_runtime.planner import ErrorAnalyzer, LLMPlanner, LLMReplanner
from agentic_runtime.registry import ToolRegistry
from agentic_runtime.tools import builtin_tools

DEFAULT_GOAL = (
    "Analyze the current git repository status, identify any modified files, "
    "and summarize what would need to be committed."
)


def confirm_step(step: ToolStep) -> bool:
    # tool name and inputs come from the planner; never let them act as markup
    inputs = escape(", ".join(f"{k}={v!r}" for k, v in step.inputs.items()))
    return Confirm.ask(f"Execute [bold]{escape(step.tool_name)}[/bold]({inputs})?", default=True)


def build_orchestrator(settings: Settings) -> Orchestrator:
    registry = ToolRegistry()
    for tool in builtin_tools(settings.workspace, settings.command_timeout):
        registry.add(tool)

    endpoint = {"base_url": settings.base_url, "api_key": settings.api_key}
    planner = LLMPlanner(registry, settings.model, **endpoint)
    replanner = LLMReplanner(registry, settings.model, **endpoint)
    analyzer = ErrorAnalyzer(settings.model, **endpoint) if settings.analyze_errors else None

    return Orchestrator(
        registry,
        planner,
        replanner,
        max_attempts=settings.max_attempts,
        parse_failure_limit=settings.parse_failure_limit,
        attempt_timeout=settings.attempt_timeout,
        dry_run=settings.dry_run,
        approve=confirm_step if settings.confirm_steps else None,
        analyzer=analyzer,
    )


def run(goal: str, settings: Settings | None = None) -> RunOutcome:
    settings = settings or load_settings()
    display.banner(settings.model, settings.base_url)
    return build_orchestrator(settings).run(goal)


def main() -> None:
    goal = " ".join(sys.argv[1:]) or DEFAULT_GOAL
    outcome = run(goal)
    sys.exit(0 if outcome.status.value in ("succeeded", "simulated") else 1)


if __name__ == "__main__":
    main()
