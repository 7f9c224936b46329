"""data_transformer tool: filter and aggregate JSON data with a sandboxed JS expression."""
from __future__ import annotations

import json
from typing import Any, Dict

from .base import ExecutionContext, ToolDefinition
from .sandbox import require_ok, run_sandboxed

TOOL_DEFINITION: ToolDefinition = {
    "name": "data_transformer",
    "description": (
        "Processes a provided JSON array (e.g., a list of invoices) to filter, calculate metrics "
        "(sum, average) or summarize it. Provide a single JavaScript expression; the input is "
        "available as the global constant DATA and the expression's value is the result."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "data_json": {"type": "string", "description": "The stringified JSON array of objects to be processed."},
            "javascript_code": {
                "type": "string",
                "minLength": 1,
                "description": "An expression such as 'DATA.filter(d => d.amount > 100).length'.",
            },
        },
        "required": ["data_json", "javascript_code"],
    },
}


def tool_handler(args: Dict[str, Any], context: ExecutionContext) -> Dict[str, Any]:  # noqa: ARG001
    try:
        data = json.loads(args["data_json"])
    except ValueError as exc:
        raise ValueError(f"data_json is not valid JSON: {exc}") from exc
    expression = args["javascript_code"].strip().rstrip(";")
    outcome = run_sandboxed(f"return ({expression});", data={"DATA": data})
    try:
        require_ok(outcome)
    except RuntimeError as exc:
        raise RuntimeError(
            f"Data processing failed: {exc}. Make sure the JSON is valid and the code is an "
            "expression like 'DATA.map(...)', not a function definition."
        ) from exc
    return {"success": True, "result": outcome.result}
