"""Typed structures used across the foreman runtime."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple

Role = Literal["system", "user", "assistant", "tool"]

TEMPLATE_VARIABLE = re.compile(r"{(\w+)}")


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> Any:
        """Decode the raw argument text, falling back to the text itself."""
        if not self.arguments:
            return {}
        try:
            return json.loads(self.arguments)
        except (TypeError, ValueError):
            return self.arguments

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    role: Role
    content: str = ""
    tool_calls: Tuple[ToolCallRequest, ...] = ()
    tool_call_id: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": self.role, "content": self.content or ""}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass(frozen=True)
class AgentStep:
    action: ToolCallRequest
    observation: str


def system_message(content: str) -> Message:
    return Message(role="system", content=content)


def user_message(content: str) -> Message:
    return Message(role="user", content=content)


def assistant_message(content: str = "", tool_calls: Iterable[ToolCallRequest] = ()) -> Message:
    return Message(role="assistant", content=content or "", tool_calls=tuple(tool_calls))


def tool_result_message(content: str, tool_call_id: str) -> Message:
    if not tool_call_id:
        raise ValueError("tool result messages require a tool_call_id")
    return Message(role="tool", content=content, tool_call_id=tool_call_id)


def format_template(template: str, values: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders, leaving unknown ones in place."""

    def _replace(match: "re.Match[str]") -> str:
        value = values.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return TEMPLATE_VARIABLE.sub(_replace, template)


def template_variables(template: str) -> List[str]:
    seen: List[str] = []
    for name in TEMPLATE_VARIABLE.findall(template):
        if name not in seen:
            seen.append(name)
    return seen
