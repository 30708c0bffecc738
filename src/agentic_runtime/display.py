# display.py
# All terminal output for the plan lifecycle engine.
#
# This module owns presentation entirely. The orchestrator and executor never
# format strings for the terminal; they call named functions here.
#
# Colour language:
#   cyan    lifecycle routing events
#   blue    planner / replanner calls
#   yellow  validation and simulation checkpoints
#   green   success / confirmed
#   red     failures, rejections, faults
#   magenta step execution internals

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from agentic_runtime.models import (
    Diagnostic,
    ExecutionResult,
    Feedback,
    InfoStep,
    ParseFailure,
    Plan,
    SimulationResult,
    ToolStep,
)

console = Console()


def set_quiet(quiet: bool) -> None:
    console.quiet = quiet


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    """Single-line, truncated, markup-escaped rendering of untrusted text."""
    value = value.strip().replace("\n", " ⏎ ")
    if len(value) > max_len:
        value = value[:max_len] + "…"
    return escape(value)


def _describe(step: ToolStep | InfoStep) -> str:
    if isinstance(step, InfoStep):
        return f"[dim]info:[/dim] {_mono(step.text, 80)}"
    args = ", ".join(f"{k}={v!r}" for k, v in step.inputs.items())
    return f"[bold white]{escape(step.tool_name)}[/bold white]([dim]{_mono(args, 60)}[/dim])"


# ---------------------------------------------------------------------------
# Run entry
# ---------------------------------------------------------------------------


def banner(model: str, base_url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Agentic Runtime[/bold cyan]\n"
            "[dim]Plan → Validate → Simulate → Execute → Reflect[/dim]\n\n"
            f"[dim]Planner model :[/dim] [white]{model}[/white]\n"
            f"[dim]Endpoint      :[/dim] [white]{base_url}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def run_started(goal: str, max_attempts: int) -> None:
    console.print()
    console.print(Rule("[cyan]NEW RUN[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(goal)}[/white]",
            title=_label("GOAL", "cyan"),
            subtitle=f"[dim]max attempts: {max_attempts}[/dim]",
            border_style="cyan",
            padding=(0, 2),
        )
    )


def attempt_start(attempt: int, source: str) -> None:
    console.print()
    console.print(Rule(f"[cyan]ATTEMPT {attempt} · {source}[/cyan]", style="cyan"))


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def calling_planner(source: str) -> None:
    console.print(_label(source.upper(), "blue"), "[blue] → Requesting plan…[/blue]")


def planner_unparseable(failure: ParseFailure) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold red]{escape(failure.reason)}[/bold red]\n\n"
            f"[dim]{escape(failure.raw) or '(no output)'}[/dim]",
            title=_label("UNPARSEABLE RESPONSE ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def plan_parsed(plan: Plan) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("#", justify="center", width=4)
    table.add_column("Kind", width=6)
    table.add_column("Step", style="white")
    table.add_column("Rationale", style="dim white")

    for step in plan.steps:
        rationale = step.rationale if isinstance(step, ToolStep) else ""
        table.add_row(str(step.index), step.kind, _describe(step), _mono(rationale, 50))

    console.print(
        Panel(
            table,
            title=_label("PLAN PARSED", "cyan"),
            subtitle=f"[dim]{len(plan.steps)} step(s), {len(plan.dropped)} dropped[/dim]",
            border_style="cyan",
            padding=(0, 1),
        )
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def plan_accepted() -> None:
    console.print("  [bold green]✓ Validation passed[/bold green]  [dim]no diagnostics[/dim]")


def plan_rejected(diagnostics: list[Diagnostic]) -> None:
    console.print()
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold red", padding=(0, 1))
    table.add_column("Step", justify="center", width=6)
    table.add_column("Kind", style="red", width=20)
    table.add_column("Message", style="white")

    for diagnostic in diagnostics:
        table.add_row(str(diagnostic.step_index), diagnostic.kind.value, escape(diagnostic.message))

    console.print(
        Panel(
            table,
            title=_label("PLAN REJECTED ✗", "red"),
            subtitle="[dim]execution blocked, requesting replan[/dim]",
            border_style="red",
            padding=(0, 1),
        )
    )


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


def simulation(results: list[SimulationResult]) -> None:
    console.print()
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold yellow", padding=(0, 1))
    table.add_column("Step", justify="center", width=6)
    table.add_column("Risk", justify="center", width=6)
    table.add_column("Predicted effect", style="yellow")

    for result in results:
        risk = "[bold red]![/bold red]" if result.risk_flag else "[green]·[/green]"
        table.add_row(str(result.step_index), risk, _mono(result.predicted_effect, 100))

    console.print(
        Panel(table, title=_label("SIMULATION", "yellow"), border_style="yellow", padding=(0, 1))
    )


def dry_run_stop() -> None:
    console.print(
        _label("DRY RUN", "yellow"),
        "[yellow] Simulation complete. Execution skipped.[/yellow]",
    )


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


def execution_start(total: int) -> None:
    console.print()
    console.print(Rule(f"[cyan]EXECUTION · {total} step(s)[/cyan]", style="cyan"))


def step_start(position: int, total: int, step: ToolStep | InfoStep) -> None:
    console.print()
    console.print(f"[bold cyan]  STEP [{position + 1}/{total}][/bold cyan]  {_describe(step)}")


def step_result(result: ExecutionResult) -> None:
    if result.success:
        status = f"[bold green]✓ exit {result.exit_status}[/bold green]"
    elif result.signal is not None:
        status = f"[bold red]✗ signal {result.signal}[/bold red]"
    else:
        status = f"[bold red]✗ exit {result.exit_status}[/bold red]"
    console.print(f"  [magenta]Status[/magenta]   {status}")
    if result.stdout.strip():
        console.print(f"  [magenta]Stdout[/magenta]   [white]{_mono(result.stdout, 140)}[/white]")
    if result.stderr.strip():
        console.print(f"  [magenta]Stderr[/magenta]   [dim red]{_mono(result.stderr, 140)}[/dim red]")


def step_skipped(step: ToolStep) -> None:
    console.print(f"  [yellow]↷ Skipped[/yellow]  [dim]{escape(step.tool_name)} declined by operator[/dim]")


def step_fault(step: ToolStep, reason: str) -> None:
    console.print(
        Panel(
            f"[bold red]{escape(repr(step.tool_name))} could not be invoked.[/bold red]\n"
            f"[white]{escape(reason)}[/white]\n"
            "[dim]Remaining steps in this attempt are not run.[/dim]",
            title=_label("EXECUTION FAULT ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def error_analysis(step: ToolStep, analysis: str) -> None:
    console.print(
        Panel(
            f"[white]{escape(analysis)}[/white]",
            title=_label(f"ERROR ANALYSIS · step {step.index}", "blue"),
            subtitle=f"[dim]{escape(step.tool_name)}[/dim]",
            border_style="blue",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Reflection / outcome
# ---------------------------------------------------------------------------


def feedback(entry: Feedback) -> None:
    color = {"executed": "green", "simulated": "yellow"}.get(entry.verdict.value, "red")
    console.print()
    console.print(
        Panel(
            f"[white]{escape(entry.narrative_summary)}[/white]",
            title=_label(f"FEEDBACK #{entry.plan_attempt_index}", "magenta"),
            subtitle=f"[dim]{entry.verdict.value}[/dim]",
            border_style=color,
            padding=(0, 2),
        )
    )


def run_finished(status: str, attempts: int, reason: str) -> None:
    color = {"succeeded": "green", "simulated": "yellow"}.get(status, "red")
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label(f"RUN {status.upper()}", color),
            subtitle=f"[dim]{attempts} attempt(s)[/dim]",
            border_style=color,
            padding=(1, 2),
        )
    )
    console.print()
