"""Tests for the capability contract and registry."""
from __future__ import annotations

import asyncio
import json

import pytest

from foreman.tools import CapabilityRegistry, discover_capabilities
from foreman.tools.base import Capability, CapabilityDescriptor

ADD_DEFINITION = {
    "name": "add_numbers",
    "description": "Add two numbers",
    "parameters": {
        "type": "object",
        "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
        "required": ["a", "b"],
    },
}


def add_handler(args, context):
    return {"sum": args["a"] + args["b"]}


def make_registry(**kwargs) -> CapabilityRegistry:
    registry = CapabilityRegistry(**kwargs)
    registry.register(ADD_DEFINITION, add_handler)
    return registry


@pytest.mark.asyncio
async def test_invoke_accepts_json_text():
    registry = make_registry()
    output = await registry.invoke("add_numbers", '{"a": 1, "b": 2}')
    assert json.loads(output) == {"sum": 3}


@pytest.mark.asyncio
async def test_invoke_accepts_mapping():
    registry = make_registry()
    output = await registry.invoke("add_numbers", {"a": 1.5, "b": 2})
    assert json.loads(output) == {"sum": 3.5}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw_input",
    [
        '{"a": 1}',
        {"a": "one", "b": 2},
        "not json at all",
        "[1, 2]",
        {"a": 1, "b": None},
    ],
)
async def test_validation_failures_resolve_with_failure_payload(raw_input, audit):
    registry = make_registry(audit=audit)
    result = await registry.execute("add_numbers", raw_input, {"business_id": "b-1"})
    payload = json.loads(result.output)
    assert result.success is False
    assert payload["success"] is False
    assert payload["error"].startswith("Tool add_numbers failed:")
    assert len(audit.entries) == 1
    entry = audit.entries[0]
    assert entry["tool"] == "add_numbers"
    assert entry["input"] == raw_input
    assert entry["context"] == {"business_id": "b-1"}


@pytest.mark.asyncio
async def test_missing_required_field_is_named_in_error():
    registry = make_registry()
    output = await registry.invoke("add_numbers", {"a": 1})
    assert "'b' is a required property" in json.loads(output)["error"]


@pytest.mark.asyncio
async def test_handler_exception_never_escapes(audit):
    def explode(args, context):
        raise KeyError("ledger offline")

    registry = CapabilityRegistry(audit=audit)
    registry.register({"name": "explode", "description": "", "parameters": {"type": "object"}}, explode)
    result = await registry.execute("explode", "{}")
    assert result.success is False
    assert "ledger offline" in json.loads(result.output)["error"]
    assert audit.entries[0]["error"] == result.error


@pytest.mark.asyncio
async def test_async_handler_and_context_passthrough():
    seen = {}

    async def handler(args, context):
        seen.update(context)
        return "plain text result"

    registry = CapabilityRegistry()
    registry.register({"name": "echo_ctx", "description": "", "parameters": {"type": "object"}}, handler)
    output = await registry.invoke("echo_ctx", None, {"business_id": "b-9", "user_id": "u-1"})
    assert output == "plain text result"
    assert seen == {"business_id": "b-9", "user_id": "u-1"}


@pytest.mark.asyncio
async def test_audit_failure_is_swallowed(broken_audit):
    registry = make_registry(audit=broken_audit)
    result = await registry.execute("add_numbers", {"a": 1})
    assert result.success is False


@pytest.mark.asyncio
async def test_unknown_tool_resolves_gracefully(audit):
    registry = make_registry(audit=audit)
    result = await registry.execute("does_not_exist", "{}")
    assert result.success is False
    assert json.loads(result.output) == {"success": False, "error": "Tool 'does_not_exist' not found."}
    assert audit.entries[0]["tool"] == "does_not_exist"


@pytest.mark.asyncio
async def test_output_is_truncated():
    capability = Capability(
        CapabilityDescriptor("long", "", {"type": "object"}),
        lambda args, context: "x" * 50,
        output_limit=10,
    )
    output = await capability.invoke({})
    assert output.startswith("x" * 10)
    assert output.endswith("[truncated]")


@pytest.mark.asyncio
async def test_blocking_handlers_run_concurrently():
    import threading

    barrier = threading.Barrier(2, timeout=5)

    def wait_for_sibling(args, context):
        barrier.wait()
        return "ok"

    registry = CapabilityRegistry()
    registry.register({"name": "wait", "description": "", "parameters": {"type": "object"}}, wait_for_sibling)
    outputs = await asyncio.gather(registry.invoke("wait", {}), registry.invoke("wait", {}))
    assert outputs == ["ok", "ok"]


def test_invalid_schema_is_rejected_at_registration():
    registry = CapabilityRegistry()
    with pytest.raises(ValueError):
        registry.register({"name": "bad", "description": "", "parameters": {"type": "not-a-type"}}, add_handler)


def test_duplicate_and_frozen_registration():
    registry = make_registry()
    with pytest.raises(ValueError):
        registry.register(ADD_DEFINITION, add_handler)
    registry.freeze()
    with pytest.raises(RuntimeError):
        registry.register({**ADD_DEFINITION, "name": "other"}, add_handler)


def test_descriptor_tool_shape():
    registry = make_registry()
    tool = registry.tools()[0]
    assert tool["type"] == "function"
    assert tool["function"]["name"] == "add_numbers"
    assert tool["function"]["parameters"] == ADD_DEFINITION["parameters"]


def test_discover_builtin_capabilities():
    registry = discover_capabilities()
    assert {"get_current_weather", "data_transformer", "code_interpreter", "navigate_to_page"} <= set(registry.names())
    assert "sandbox" not in registry


@pytest.mark.asyncio
async def test_navigate_to_page_returns_ui_action(builtin_registry):
    output = await builtin_registry.invoke("navigate_to_page", {"url": "/dashboard/invoices"})
    assert json.loads(output) == {"action": "navigate", "payload": {"url": "/dashboard/invoices"}}


@pytest.mark.asyncio
async def test_navigate_to_page_rejects_absolute_urls(builtin_registry):
    output = await builtin_registry.invoke("navigate_to_page", {"url": "https://evil.example"})
    assert json.loads(output)["success"] is False


def test_discover_honours_allow_and_deny_lists(monkeypatch):
    monkeypatch.setenv("FOREMAN_TOOLS_ALLOW", "navigate_to_page,code_interpreter")
    monkeypatch.setenv("FOREMAN_TOOLS_DENY", "code_interpreter")
    assert discover_capabilities().names() == ["navigate_to_page"]
