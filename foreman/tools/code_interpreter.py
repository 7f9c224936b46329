"""code_interpreter tool: run a self-contained JavaScript function body in the sandbox."""
from __future__ import annotations

from typing import Any, Dict

from .base import ExecutionContext, ToolDefinition
from .sandbox import require_ok, run_sandboxed

NO_RETURN_VALUE = "Execution finished with no return value."

TOOL_DEFINITION: ToolDefinition = {
    "name": "code_interpreter",
    "description": (
        "Executes sandboxed JavaScript for calculations, algorithms or text processing. "
        "The code runs as a function body: use 'return' for the final output. "
        "There is no file or network access."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "code": {"type": "string", "minLength": 1, "description": "Self-contained code to execute."},
        },
        "required": ["code"],
    },
}


def tool_handler(args: Dict[str, Any], context: ExecutionContext) -> Dict[str, Any]:  # noqa: ARG001
    outcome = require_ok(run_sandboxed(args["code"]))
    result: Dict[str, Any] = {
        "success": True,
        "result": outcome.result if outcome.result is not None else NO_RETURN_VALUE,
    }
    if outcome.logs:
        result["console"] = outcome.logs
    return result
