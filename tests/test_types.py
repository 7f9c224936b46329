"""Tests for the message model."""
from __future__ import annotations

import dataclasses

import pytest

from foreman.types import (
    Message,
    ToolCallRequest,
    assistant_message,
    format_template,
    system_message,
    template_variables,
    tool_result_message,
    user_message,
)


def test_factories_tag_roles():
    assert system_message("s").role == "system"
    assert user_message("u").role == "user"
    assert assistant_message("a").role == "assistant"
    assert tool_result_message("t", "call_1").role == "tool"


def test_messages_are_immutable():
    msg = user_message("hello")
    with pytest.raises(dataclasses.FrozenInstanceError):
        msg.content = "changed"  # type: ignore[misc]


def test_tool_result_requires_id():
    with pytest.raises(ValueError):
        tool_result_message("output", "")


def test_assistant_message_keeps_calls_as_tuple():
    calls = [ToolCallRequest(id="call_1", name="view", arguments='{"a": 1}')]
    msg = assistant_message("thinking", calls)
    assert msg.tool_calls == tuple(calls)


def test_to_wire_includes_tool_metadata():
    call = ToolCallRequest(id="call_1", name="get_current_weather", arguments='{"latitude": 0}')
    wire = assistant_message("", [call]).to_wire()
    assert wire["role"] == "assistant"
    assert wire["tool_calls"][0]["id"] == "call_1"
    assert wire["tool_calls"][0]["function"] == {"name": "get_current_weather", "arguments": '{"latitude": 0}'}

    result = tool_result_message("sunny", "call_1").to_wire()
    assert result == {"role": "tool", "content": "sunny", "tool_call_id": "call_1"}


def test_plain_message_wire_has_no_optional_fields():
    assert Message(role="user", content="hi").to_wire() == {"role": "user", "content": "hi"}


@pytest.mark.parametrize(
    "arguments,expected",
    [
        ('{"x": 1}', {"x": 1}),
        ("", {}),
        ("not json", "not json"),
    ],
)
def test_parsed_arguments(arguments, expected):
    assert ToolCallRequest(id="1", name="t", arguments=arguments).parsed_arguments() == expected


def test_format_template_substitutes_known_values():
    assert format_template("Hello {name}, you owe {amount}", {"name": "Ada", "amount": 12}) == "Hello Ada, you owe 12"


def test_format_template_leaves_missing_placeholders():
    assert format_template("Hello {name} from {city}", {"name": "Ada"}) == "Hello Ada from {city}"


def test_format_template_does_not_rescan_substituted_values():
    assert format_template("{a}", {"a": "{b}", "b": "x"}) == "{b}"


def test_template_variables_are_unique_and_ordered():
    assert template_variables("{b} {a} {b} {not-a-var}") == ["b", "a"]
