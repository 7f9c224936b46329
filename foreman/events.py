"""Events streamed from the agent engine to its caller.

The engine reports progress exclusively through these values:

- text deltas while the model is generating
- capability requests and completions while acting
- a single final answer (or an error) when the run ends
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Literal, Tuple

from .types import ToolCallRequest


class EventType(str, Enum):
    """Types of events a run can emit."""

    TEXT_DELTA = "text_delta"
    CAPABILITY_REQUESTED = "capability_requested"
    CAPABILITY_COMPLETED = "capability_completed"
    FINAL_ANSWER = "final_answer"
    ERROR = "error"


class RunState(str, Enum):
    """States of the agent execution loop."""

    ASSEMBLING = "assembling"
    STREAMING = "streaming"
    ACTING = "acting"
    FINISHED = "finished"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.FINISHED, RunState.ABORTED, RunState.FAILED)


Outcome = Literal["finished", "aborted"]


@dataclass(frozen=True)
class StreamEvent:
    """Base class for everything a run yields."""

    event_type: ClassVar[EventType]

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.event_type.value}


@dataclass(frozen=True)
class TextDelta(StreamEvent):
    event_type: ClassVar[EventType] = EventType.TEXT_DELTA

    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.event_type.value, "text": self.text}


@dataclass(frozen=True)
class CapabilityRequested(StreamEvent):
    event_type: ClassVar[EventType] = EventType.CAPABILITY_REQUESTED

    calls: Tuple[ToolCallRequest, ...]
    content: str = ""

    @property
    def call(self) -> ToolCallRequest:
        return self.calls[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type.value,
            "calls": [{"id": c.id, "name": c.name, "arguments": c.arguments} for c in self.calls],
            "content": self.content,
        }


@dataclass(frozen=True)
class CapabilityCompleted(StreamEvent):
    event_type: ClassVar[EventType] = EventType.CAPABILITY_COMPLETED

    call: ToolCallRequest
    output: str
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type.value,
            "id": self.call.id,
            "name": self.call.name,
            "output": self.output,
            "success": self.success,
        }


@dataclass(frozen=True)
class FinalAnswer(StreamEvent):
    event_type: ClassVar[EventType] = EventType.FINAL_ANSWER

    text: str
    outcome: Outcome = "finished"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.event_type.value, "text": self.text, "outcome": self.outcome}


@dataclass(frozen=True)
class RunError(StreamEvent):
    event_type: ClassVar[EventType] = EventType.ERROR

    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.event_type.value, "error": self.error}
