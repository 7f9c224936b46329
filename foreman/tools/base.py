"""Capability wrapper: validate model-supplied input, execute, contain failures."""
from __future__ import annotations

import asyncio
import inspect
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for

from ..config import DEFAULT_TOOL_OUTPUT_LIMIT, env_int
from ..logger import HumanEntry, Logger
from ..utils import truncate_output

ToolDefinition = Dict[str, Any]
ExecutionContext = Mapping[str, Any]
ToolHandler = Callable[[Dict[str, Any], ExecutionContext], Union[Any, Awaitable[Any]]]


class AuditSink(Protocol):
    async def record(self, entry: Dict[str, Any]) -> None:
        ...


class CapabilityInputError(ValueError):
    """Raised when model-supplied arguments cannot be decoded or validated."""


@dataclass(frozen=True)
class CapabilityDescriptor:
    name: str
    description: str
    input_schema: Dict[str, Any]

    @classmethod
    def from_definition(cls, definition: ToolDefinition) -> "CapabilityDescriptor":
        name = definition.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Tool definition requires a non-empty 'name'")
        schema = definition.get("parameters") or {"type": "object", "properties": {}}
        return cls(name=name, description=definition.get("description", ""), input_schema=schema)

    def to_tool(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


@dataclass(frozen=True)
class CapabilityResult:
    output: str
    success: bool = True
    error: Optional[str] = None


def failure_payload(name: str, message: str) -> str:
    return json.dumps({"success": False, "error": f"Tool {name} failed: {message}"})


class Capability:
    """A named, schema-validated unit of external effect.

    ``execute`` always resolves: decoding errors, schema violations and
    handler exceptions are all folded into a ``{"success": false}`` payload
    that the model receives as its observation.
    """

    def __init__(
        self,
        descriptor: CapabilityDescriptor,
        handler: ToolHandler,
        audit: Optional[AuditSink] = None,
        logger: Optional[Logger] = None,
        output_limit: Optional[int] = None,
    ) -> None:
        self.descriptor = descriptor
        self.handler = handler
        self.audit = audit
        self.logger = logger
        self.output_limit = output_limit or env_int("FOREMAN_TOOL_OUTPUT_LIMIT", DEFAULT_TOOL_OUTPUT_LIMIT)
        try:
            validator_cls = validator_for(descriptor.input_schema, default=Draft7Validator)
            validator_cls.check_schema(descriptor.input_schema)
        except SchemaError as exc:
            raise ValueError(f"Invalid input schema for tool {descriptor.name}: {exc.message}") from exc
        self._validator = validator_cls(descriptor.input_schema)

    @property
    def name(self) -> str:
        return self.descriptor.name

    def validate(self, raw_input: Any) -> Dict[str, Any]:
        candidate = _decode_input(raw_input)
        error = next(iter(sorted(self._validator.iter_errors(candidate), key=_error_sort_key)), None)
        if error is not None:
            location = "/".join(str(part) for part in error.absolute_path)
            prefix = f"{location}: " if location else ""
            raise CapabilityInputError(f"{prefix}{error.message}")
        if not isinstance(candidate, dict):
            raise CapabilityInputError("Tool input must be a JSON object")
        return candidate

    async def execute(self, raw_input: Any, context: Optional[ExecutionContext] = None) -> CapabilityResult:
        context = context or {}
        try:
            validated = self.validate(raw_input)
            if inspect.iscoroutinefunction(self.handler):
                result = await self.handler(validated, context)
            else:
                # blocking handlers run in a worker thread so siblings overlap
                result = await asyncio.to_thread(self.handler, validated, context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as err:  # noqa: BLE001
            message = str(err) or err.__class__.__name__
            await self._audit_failure(message, raw_input, context)
            return CapabilityResult(output=failure_payload(self.name, message), success=False, error=message)
        return CapabilityResult(output=truncate_output(_render_output(result), self.output_limit))

    async def invoke(self, raw_input: Any, context: Optional[ExecutionContext] = None) -> str:
        return (await self.execute(raw_input, context)).output

    async def _audit_failure(self, message: str, raw_input: Any, context: ExecutionContext) -> None:
        await record_failure(self.audit, self.logger, self.name, message, raw_input, context)


async def record_failure(
    audit: Optional[AuditSink],
    logger: Optional[Logger],
    name: str,
    message: str,
    raw_input: Any,
    context: ExecutionContext,
) -> None:
    if logger:
        logger.human(HumanEntry(title=name, body=f"error: {message}", variant="error"))
    if audit is None:
        return
    try:
        await audit.record(
            {
                "type": "capability_error",
                "tool": name,
                "error": message,
                "input": raw_input,
                "context": dict(context),
            }
        )
    except Exception as err:  # noqa: BLE001
        if logger:
            logger.human(HumanEntry(title="audit", body=f"failed to record tool error: {err}", variant="warn"))


def _decode_input(raw_input: Any) -> Any:
    if raw_input is None:
        return {}
    if isinstance(raw_input, (bytes, bytearray)):
        raw_input = raw_input.decode("utf8", errors="replace")
    if isinstance(raw_input, str):
        if not raw_input.strip():
            return {}
        try:
            return json.loads(raw_input)
        except ValueError as exc:
            raise CapabilityInputError(f"Arguments are not valid JSON: {exc}") from exc
    if isinstance(raw_input, Mapping):
        return dict(raw_input)
    return raw_input


def _render_output(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def _error_sort_key(error: Any) -> tuple:
    return (len(error.absolute_path), error.message)
