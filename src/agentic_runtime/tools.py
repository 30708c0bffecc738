# tools.py
# Built-in tools: concrete capabilities behind the Tool contract.
# The executor reaches these only through the registry; nothing calls them directly.

import os
import subprocess
from pathlib import Path
from typing import Mapping

from agentic_runtime.errors import ExecutionFault
from agentic_runtime.models import ToolOutcome


def _run(argv: list[str] | str, *, cwd: str, timeout: float, shell: bool = False) -> ToolOutcome:
    try:
        proc = subprocess.run(
            argv,
            cwd=cwd,
            shell=shell,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ExecutionFault(f"Failed to start {argv!r}: {exc}") from exc
    except subprocess.TimeoutExpired as exc:
        raise ExecutionFault(f"{argv!r} timed out after {timeout}s.") from exc
    return ToolOutcome(exit_status=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)


class EchoTool:
    description = "Echoes the message back with a prefix."
    output_schema = "Text: 'Echoed: <message>'."
    mutates = False

    def name(self) -> str:
        return "echo"

    def required_inputs(self) -> set[str]:
        return {"message"}

    def execute(self, inputs: Mapping[str, str]) -> ToolOutcome:
        return ToolOutcome(exit_status=0, stdout=f"Echoed: {inputs.get('message', '')}")

    def predict(self, inputs: Mapping[str, str]) -> str:
        return f"Prints 'Echoed: {inputs.get('message', '')}'. No side effects."


class GitStatusTool:
    description = "Runs 'git status' in the workspace."
    output_schema = "Text: branch name and modified/untracked files."
    mutates = False

    def __init__(self, workspace: str = ".", timeout: float = 30) -> None:
        self._workspace = workspace
        self._timeout = timeout

    def name(self) -> str:
        return "git_status"

    def required_inputs(self) -> set[str]:
        return set()

    def execute(self, inputs: Mapping[str, str]) -> ToolOutcome:
        return _run(["git", "status"], cwd=self._workspace, timeout=self._timeout)

    def predict(self, inputs: Mapping[str, str]) -> str:
        return f"Reads repository state in {self._workspace!r}. Read-only."


class RunCommandTool:
    description = "Runs a shell command and returns its stdout/stderr."
    output_schema = "Text: the command's stdout and stderr."
    mutates = True

    def __init__(self, workspace: str = ".", timeout: float = 60) -> None:
        self._workspace = workspace
        self._timeout = timeout

    def name(self) -> str:
        return "run_command"

    def required_inputs(self) -> set[str]:
        return {"command"}

    def execute(self, inputs: Mapping[str, str]) -> ToolOutcome:
        return _run(inputs["command"], cwd=self._workspace, timeout=self._timeout, shell=True)

    def predict(self, inputs: Mapping[str, str]) -> str:
        return (
            f"Runs `{inputs.get('command', '')}` via the shell in {self._workspace!r}. "
            "Effects depend on the command."
        )


class WriteFileTool:
    description = "Writes text content to a file under the workspace."
    output_schema = "Text: number of bytes written and the resolved path."
    mutates = True

    def __init__(self, workspace: str = ".") -> None:
        self._root = Path(workspace).resolve()

    def name(self) -> str:
        return "write_file"

    def required_inputs(self) -> set[str]:
        return {"path", "content"}

    def _target(self, inputs: Mapping[str, str]) -> Path | None:
        """Resolved destination, or None when the path leaves the workspace."""
        target = (self._root / inputs.get("path", "").strip()).resolve()
        if target != self._root and self._root not in target.parents:
            return None
        return target

    def execute(self, inputs: Mapping[str, str]) -> ToolOutcome:
        target = self._target(inputs)
        if target is None:
            return ToolOutcome(
                exit_status=1,
                stderr=f"Refusing to write {inputs.get('path', '')!r}: path is outside the workspace {self._root}.",
            )
        data = inputs.get("content", "").encode("utf-8")
        try:
            os.makedirs(target.parent, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            return ToolOutcome(exit_status=1, stderr=f"Could not write {target}: {exc}")
        return ToolOutcome(exit_status=0, stdout=f"Wrote {len(data)} bytes to {target}.")

    def predict(self, inputs: Mapping[str, str]) -> str:
        target = self._target(inputs)
        if target is None:
            return f"Refuses {inputs.get('path', '')!r}: outside the workspace."
        size = len(inputs.get("content", "").encode("utf-8"))
        action = "Overwrites" if target.exists() else "Creates"
        return f"{action} {target} with {size} bytes."


def builtin_tools(workspace: str = ".", command_timeout: float = 60) -> list:
    return [
        EchoTool(),
        GitStatusTool(workspace),
        RunCommandTool(workspace, timeout=command_timeout),
        WriteFileTool(workspace),
    ]
