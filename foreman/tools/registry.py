"""Capability registry and discovery of built-in foreman.tools.* modules."""
from __future__ import annotations

import importlib
import json
import pkgutil
from typing import Any, Dict, Iterator, List, Optional

from ..config import env_list
from ..logger import Logger
from .base import (
    AuditSink,
    Capability,
    CapabilityDescriptor,
    CapabilityResult,
    ExecutionContext,
    ToolDefinition,
    ToolHandler,
    record_failure,
)

# Helper modules in this package that do not define capabilities
_SKIP_MODULES = {"base", "registry", "sandbox"}


class CapabilityRegistry:
    """Name-keyed lookup of capabilities, read-only once frozen."""

    def __init__(self, audit: Optional[AuditSink] = None, logger: Optional[Logger] = None) -> None:
        self.audit = audit
        self.logger = logger
        self._capabilities: Dict[str, Capability] = {}
        self._frozen = False

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> Capability:
        descriptor = CapabilityDescriptor.from_definition(definition)
        capability = Capability(descriptor, handler, audit=self.audit, logger=self.logger)
        self.add(capability)
        return capability

    def add(self, capability: Capability) -> None:
        if self._frozen:
            raise RuntimeError("Capability registry is frozen; register tools before starting a run")
        if capability.name in self._capabilities:
            raise ValueError(f"Tool '{capability.name}' is already registered")
        self._capabilities[capability.name] = capability

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[Capability]:
        return self._capabilities.get(name)

    def names(self) -> List[str]:
        return list(self._capabilities)

    def descriptors(self) -> List[CapabilityDescriptor]:
        return [capability.descriptor for capability in self._capabilities.values()]

    def tools(self) -> List[Dict[str, Any]]:
        return [descriptor.to_tool() for descriptor in self.descriptors()]

    async def execute(self, name: str, raw_input: Any, context: Optional[ExecutionContext] = None) -> CapabilityResult:
        capability = self._capabilities.get(name)
        if capability is None:
            message = f"Tool '{name}' not found."
            await record_failure(self.audit, self.logger, name, message, raw_input, context or {})
            return CapabilityResult(output=json.dumps({"success": False, "error": message}), success=False, error=message)
        return await capability.execute(raw_input, context)

    async def invoke(self, name: str, raw_input: Any, context: Optional[ExecutionContext] = None) -> str:
        return (await self.execute(name, raw_input, context)).output

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __iter__(self) -> Iterator[Capability]:
        return iter(list(self._capabilities.values()))

    def __len__(self) -> int:
        return len(self._capabilities)


def discover_capabilities(audit: Optional[AuditSink] = None, logger: Optional[Logger] = None) -> CapabilityRegistry:
    """Register every built-in capability module.

    ``FOREMAN_TOOLS_ALLOW`` and ``FOREMAN_TOOLS_DENY`` (comma-separated tool
    names) narrow the set that gets registered.
    """
    registry = CapabilityRegistry(audit=audit, logger=logger)
    env_allow = env_list("FOREMAN_TOOLS_ALLOW")
    env_deny = env_list("FOREMAN_TOOLS_DENY")
    package_name = __name__.rsplit(".", 1)[0]
    package = importlib.import_module(package_name)
    for module_info in pkgutil.iter_modules(package.__path__):
        name = module_info.name
        if name.startswith("_") or name in _SKIP_MODULES:
            continue
        module = importlib.import_module(f"{package_name}.{name}")
        definition = getattr(module, "TOOL_DEFINITION", None)
        handler = getattr(module, "tool_handler", None)
        if not (definition and handler):
            continue
        tool_name = definition.get("name")
        if env_allow and tool_name not in env_allow:
            continue
        if env_deny and tool_name in env_deny:
            continue
        registry.register(definition, handler)
    return registry
