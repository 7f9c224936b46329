"""Prompt templates and per-step prompt assembly."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .tools.base import CapabilityDescriptor
from .types import (
    AgentStep,
    Message,
    Role,
    assistant_message,
    format_template,
    system_message,
    template_variables,
    user_message,
)

SCRATCHPAD_HEADER = "Progress so far in this turn:"
NO_CAPABILITIES = "No tools are available for this conversation."

_ROLE_ALIASES: Dict[str, Role] = {
    "system": "system",
    "user": "user",
    "human": "user",
    "assistant": "assistant",
    "ai": "assistant",
}


@dataclass(frozen=True)
class MessageTemplate:
    role: Role
    template: str

    def format(self, values: Mapping[str, Any]) -> Message:
        content = format_template(self.template, values)
        if self.role == "system":
            return system_message(content)
        if self.role == "user":
            return user_message(content)
        return assistant_message(content)


@dataclass(frozen=True)
class MessagesPlaceholder:
    variable_name: str = "chat_history"

    def get_messages(self, values: Mapping[str, Any]) -> List[Message]:
        messages = values.get(self.variable_name)
        if not messages:
            return []
        if not isinstance(messages, (list, tuple)):
            raise ValueError(f'Value for MessagesPlaceholder "{self.variable_name}" must be a list of messages')
        return list(messages)


PromptPart = Union[MessageTemplate, MessagesPlaceholder]


class ChatPromptTemplate:
    """An ordered mix of message templates and history placeholders."""

    def __init__(self, messages: Sequence[PromptPart]) -> None:
        self.messages: Tuple[PromptPart, ...] = tuple(messages)
        self.input_variables = self._discover_input_variables()

    @classmethod
    def from_messages(cls, messages: Iterable[Union[Tuple[str, str], PromptPart]]) -> "ChatPromptTemplate":
        parts: List[PromptPart] = []
        for entry in messages:
            if isinstance(entry, (MessageTemplate, MessagesPlaceholder)):
                parts.append(entry)
                continue
            if isinstance(entry, tuple) and len(entry) == 2:
                role, template = entry
                if role not in _ROLE_ALIASES:
                    raise ValueError(f"Unsupported template role: {role}")
                parts.append(MessageTemplate(_ROLE_ALIASES[role], template))
                continue
            raise ValueError(
                "Invalid message format. Must be a (role, template) tuple, a MessagesPlaceholder, or a MessageTemplate."
            )
        return cls(parts)

    def _discover_input_variables(self) -> List[str]:
        variables: List[str] = []
        for part in self.messages:
            names = template_variables(part.template) if isinstance(part, MessageTemplate) else [part.variable_name]
            for name in names:
                if name not in variables:
                    variables.append(name)
        return variables

    def partial(self, **values: Any) -> "ChatPromptTemplate":
        parts: List[PromptPart] = []
        for part in self.messages:
            if isinstance(part, MessageTemplate):
                parts.append(MessageTemplate(part.role, format_template(part.template, values)))
            else:
                parts.append(part)
        return ChatPromptTemplate(parts)

    def format(self, values: Optional[Mapping[str, Any]] = None) -> List[Message]:
        values = values or {}
        result: List[Message] = []
        for part in self.messages:
            if isinstance(part, MessageTemplate):
                result.append(part.format(values))
            else:
                result.extend(part.get_messages(values))
        return result


DEFAULT_TEMPLATE = ChatPromptTemplate.from_messages(
    [
        ("system", "{directive}\n\n{capability_manifest}"),
        MessagesPlaceholder("chat_history"),
        MessagesPlaceholder("agent_scratchpad"),
    ]
)


def render_capability_manifest(descriptors: Sequence[CapabilityDescriptor]) -> str:
    if not descriptors:
        return NO_CAPABILITIES
    lines = ["You can call the following tools. Arguments must match each tool's JSON schema.", ""]
    for descriptor in descriptors:
        lines.append(f"## {descriptor.name}")
        if descriptor.description:
            lines.append(descriptor.description)
        lines.append(f"Input schema: {json.dumps(descriptor.input_schema, sort_keys=True)}")
        lines.append("")
    return "\n".join(lines).rstrip()


def render_scratchpad(steps: Sequence[AgentStep]) -> str:
    return "".join(
        f"\nTool Used: {step.action.name}\nTool Input: {step.action.arguments}\nObservation: {step.observation}\n"
        for step in steps
    )


class PromptAssembler:
    """Builds the message list for one inference call."""

    def __init__(
        self,
        directive: str,
        descriptors: Sequence[CapabilityDescriptor] = (),
        template: Optional[ChatPromptTemplate] = None,
    ) -> None:
        self.directive = directive
        self.descriptors = tuple(descriptors)
        self.template = template or DEFAULT_TEMPLATE
        self.manifest = render_capability_manifest(self.descriptors)

    def values(
        self,
        history: Sequence[Message],
        steps: Sequence[AgentStep] = (),
        input: Optional[str] = None,
    ) -> Dict[str, Any]:
        scratchpad = render_scratchpad(steps)
        return {
            "directive": self.directive,
            "capability_manifest": self.manifest,
            "input": input,
            "scratchpad": scratchpad,
            "chat_history": list(history),
            "agent_scratchpad": [system_message(f"{SCRATCHPAD_HEADER}\n{scratchpad.strip()}")] if steps else [],
        }

    def assemble(
        self,
        history: Sequence[Message],
        steps: Sequence[AgentStep] = (),
        input: Optional[str] = None,
    ) -> List[Message]:
        return self.template.format(self.values(history, steps, input))
