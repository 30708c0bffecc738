# registry.py
# Tool contract and Tool Registry.
#
# A tool is anything that satisfies the Tool protocol; there is no base class. The
# registry pairs each ToolSpec with its live implementation (when one exists)
# and is populated once at process start. There is no removal.

from typing import Mapping, Protocol, runtime_checkable

from agentic_runtime.errors import DuplicateToolError
from agentic_runtime.models import ToolOutcome, ToolSpec


@runtime_checkable
class Tool(Protocol):
    def name(self) -> str: ...

    def required_inputs(self) -> set[str]: ...

    def execute(self, inputs: Mapping[str, str]) -> ToolOutcome: ...

    def predict(self, inputs: Mapping[str, str]) -> str: ...


def spec_for(tool: Tool) -> ToolSpec:
    """Build a ToolSpec from a tool's declared contract and optional metadata."""
    return ToolSpec(
        name=tool.name(),
        required_inputs=frozenset(tool.required_inputs()),
        description=getattr(tool, "description", ""),
        output_schema=getattr(tool, "output_schema", None),
        mutates=getattr(tool, "mutates", False),
    )


class ToolRegistry:
    """
    Name-keyed set of available capabilities.

    Example:
        registry = ToolRegistry()
        registry.add(GitStatusTool())
        registry.lookup("git_status")  # -> ToolSpec
    """

    def __init__(self) -> None:
        self._specs: dict[str, ToolSpec] = {}
        self._tools: dict[str, Tool] = {}

    def register(self, spec: ToolSpec, tool: Tool | None = None) -> None:
        """
        Register a spec, optionally backed by a live implementation.

        A spec without a tool can be planned and simulated against but any
        attempt to execute it is an ExecutionFault.
        """
        if spec.name in self._specs:
            raise DuplicateToolError(f"Tool '{spec.name}' is already registered.")
        if tool is not None and tool.name() != spec.name:
            raise ValueError(f"Tool name '{tool.name()}' does not match spec name '{spec.name}'.")
        self._specs[spec.name] = spec
        if tool is not None:
            self._tools[spec.name] = tool

    def add(self, tool: Tool) -> ToolSpec:
        spec = spec_for(tool)
        self.register(spec, tool)
        return spec

    def lookup(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def all(self) -> tuple[ToolSpec, ...]:
        """Read-only snapshot in registration order."""
        return tuple(self._specs.values())

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)
