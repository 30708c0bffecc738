# simulator.py
# Advisory pre-execution pass: predicts each tool step's effect without
# running anything. A prediction that cannot be made is a risk flag, never
# an error; the plan still executes.

from agentic_runtime.models import Plan, SimulationResult, ToolStep
from agentic_runtime.registry import ToolRegistry


class Simulator:
    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    def simulate_step(self, step: ToolStep) -> SimulationResult:
        spec = self._registry.lookup(step.tool_name)
        if spec is None:
            return SimulationResult(
                step_index=step.index,
                predicted_effect=f"Cannot simulate: tool '{step.tool_name}' is not registered.",
                risk_flag=True,
            )

        tool = self._registry.tool(step.tool_name)
        if tool is None:
            effect = spec.output_schema or spec.description or "No declared effect."
            return SimulationResult(
                step_index=step.index,
                predicted_effect=f"{spec.name} (declared only): {effect}",
                risk_flag=True,
            )

        try:
            effect = tool.predict(dict(step.inputs))
        except Exception as exc:  # noqa: BLE001
            return SimulationResult(
                step_index=step.index,
                predicted_effect=f"Simulation of '{spec.name}' failed: {exc}",
                risk_flag=True,
            )
        return SimulationResult(step_index=step.index, predicted_effect=effect, risk_flag=spec.mutates)

    def simulate(self, plan: Plan) -> list[SimulationResult]:
        return [self.simulate_step(step) for step in plan.tool_steps]
