"""navigate_to_page tool (asks the calling UI to open a page)."""
from __future__ import annotations

from typing import Any, Dict

from .base import ExecutionContext, ToolDefinition

TOOL_DEFINITION: ToolDefinition = {
    "name": "navigate_to_page",
    "description": (
        "Takes the user to a specific page or dashboard within the application. "
        "After calling it, only output a short, helpful message for the user."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "pattern": "^/",
                "description": "The relative URL of the page (e.g., '/dashboard/invoices').",
            }
        },
        "required": ["url"],
        "additionalProperties": False,
    },
}


async def tool_handler(args: Dict[str, Any], context: ExecutionContext) -> Dict[str, Any]:  # noqa: ARG001
    return {"action": "navigate", "payload": {"url": args["url"]}}
