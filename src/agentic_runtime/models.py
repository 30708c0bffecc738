# models.py
# Data contracts for the plan lifecycle engine.
# Pure schema and derived fields.

from enum import Enum
from types import MappingProxyType
from typing import Annotated, Literal, Mapping, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer, computed_field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolSpec(_Frozen):
    """Declared contract of a registered capability."""

    name: str = Field(..., description="Unique registry key.")
    required_inputs: frozenset[str] = Field(default_factory=frozenset)
    description: str = Field(default="", description="Shown to the planner.")
    output_schema: str | None = Field(default=None, description="Free-text description of the output.")
    mutates: bool = Field(default=False, description="Whether the tool changes external state.")


class ToolOutcome(_Frozen):
    """Raw result returned by a tool's execute()."""

    exit_status: int
    stdout: str = ""
    stderr: str = ""


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

# Validated as a dict, stored as a read-only view, dumped back as a dict.
ReadOnlyInputs = Annotated[
    Mapping[str, str],
    AfterValidator(MappingProxyType),
    PlainSerializer(dict, return_type=dict[str, str]),
]


class ToolStep(_Frozen):
    kind: Literal["tool"] = "tool"
    index: int = Field(..., description="Position in the raw candidate plan.")
    tool_name: str
    inputs: ReadOnlyInputs = Field(default_factory=lambda: MappingProxyType({}))
    rationale: str = ""


class InfoStep(_Frozen):
    kind: Literal["info"] = "info"
    index: int = Field(..., description="Position in the raw candidate plan.")
    text: str


PlanStep = Annotated[Union[ToolStep, InfoStep], Field(discriminator="kind")]


class DroppedStep(_Frozen):
    """A raw step that failed structural parsing and was left out of the Plan."""

    index: int
    reason: str


class Plan(_Frozen):
    """An ordered, immutable sequence of steps plus provenance."""

    steps: tuple[PlanStep, ...] = ()
    attempt: int = Field(default=1, ge=1)
    source: Literal["planner", "replanner"] = "planner"
    dropped: tuple[DroppedStep, ...] = ()

    @property
    def tool_steps(self) -> tuple[ToolStep, ...]:
        return tuple(step for step in self.steps if isinstance(step, ToolStep))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class DiagnosticKind(str, Enum):
    UNKNOWN_TOOL = "UnknownTool"
    MISSING_INPUT = "MissingInput"
    PLACEHOLDER_DETECTED = "PlaceholderDetected"
    MALFORMED_STEP = "MalformedStep"


# PlaceholderDetected is only ever raised against ToolStep inputs, where it
# blocks execution just like the structural kinds.
BLOCKING_KINDS = frozenset(DiagnosticKind)


class Diagnostic(_Frozen):
    kind: DiagnosticKind
    step_index: int
    message: str
    hint: str = Field(default="", description="Corrective suggestion for the replanner.")

    @computed_field
    @property
    def blocking(self) -> bool:
        return self.kind in BLOCKING_KINDS


class ParseFailure(_Frozen):
    """Oracle output that contained no usable plan payload."""

    reason: str
    raw: str = Field(default="", description="Truncated excerpt of the offending text.")


# ---------------------------------------------------------------------------
# Simulation / execution
# ---------------------------------------------------------------------------


class SimulationResult(_Frozen):
    step_index: int
    predicted_effect: str
    risk_flag: bool = False


class ExecutionResult(_Frozen):
    step_index: int
    exit_status: int | None = Field(
        default=None,
        description="Process exit status; negative means terminated by signal; None means never run.",
    )
    stdout: str = ""
    stderr: str = ""
    fault: str | None = Field(default=None, description="Why the tool could not be invoked.")
    skipped: bool = False

    @computed_field
    @property
    def success(self) -> bool:
        return self.exit_status == 0

    @property
    def signal(self) -> int | None:
        if self.exit_status is not None and self.exit_status < 0:
            return -self.exit_status
        return None


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


class Verdict(str, Enum):
    EXECUTED = "executed"
    REJECTED = "rejected"
    UNPARSEABLE = "unparseable"
    SIMULATED = "simulated"


class Feedback(_Frozen):
    """Synthesis of one planning attempt, appended to the Run Log."""

    goal: str
    plan_attempt_index: int = Field(..., ge=1)
    verdict: Verdict
    plan: Plan | None = None
    diagnostics: tuple[Diagnostic, ...] = ()
    simulations: tuple[SimulationResult, ...] = ()
    execution_results: tuple[ExecutionResult, ...] = ()
    narrative_summary: str
