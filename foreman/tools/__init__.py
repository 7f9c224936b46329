from .base import Capability, CapabilityDescriptor, CapabilityResult, ExecutionContext, ToolDefinition, ToolHandler
from .registry import CapabilityRegistry, discover_capabilities

__all__ = [
    "Capability",
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "CapabilityResult",
    "ExecutionContext",
    "ToolDefinition",
    "ToolHandler",
    "discover_capabilities",
]
