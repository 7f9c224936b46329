"""foreman: a streaming, tool-augmented language model agent engine."""

__version__ = "0.1.0"

from .agent import BUDGET_EXHAUSTED_MESSAGE, AgentExecutor, AgentRun, RunResult  # noqa: E402
from .events import (  # noqa: E402
    CapabilityCompleted,
    CapabilityRequested,
    EventType,
    FinalAnswer,
    RunError,
    RunState,
    StreamEvent,
    TextDelta,
)
from .llm import ChatClient, EchoClient, InferenceError, InferenceTimeout, ProtocolError  # noqa: E402
from .prompts import ChatPromptTemplate, MessagesPlaceholder, MessageTemplate, PromptAssembler  # noqa: E402
from .tools import CapabilityDescriptor, CapabilityRegistry, discover_capabilities  # noqa: E402
from .types import AgentStep, Message, ToolCallRequest  # noqa: E402

__all__ = [
    "BUDGET_EXHAUSTED_MESSAGE",
    "AgentExecutor",
    "AgentRun",
    "AgentStep",
    "CapabilityCompleted",
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "CapabilityRequested",
    "ChatClient",
    "ChatPromptTemplate",
    "EchoClient",
    "EventType",
    "FinalAnswer",
    "InferenceError",
    "InferenceTimeout",
    "Message",
    "MessageTemplate",
    "MessagesPlaceholder",
    "PromptAssembler",
    "ProtocolError",
    "RunError",
    "RunResult",
    "RunState",
    "StreamEvent",
    "TextDelta",
    "ToolCallRequest",
    "discover_capabilities",
]
