"""Canned model turns for driving the agent without a network."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from foreman.llm import parse_stream
from foreman.types import Message


def ndjson(chunks: Sequence[Dict[str, Any]]) -> bytes:
    return "".join(json.dumps(chunk) + "\n" for chunk in chunks).encode("utf8")


def text_turn(*parts: str) -> List[Dict[str, Any]]:
    chunks: List[Dict[str, Any]] = [{"message": {"role": "assistant", "content": part}, "done": False} for part in parts]
    chunks.append({"message": {"role": "assistant", "content": ""}, "done": True})
    return chunks


def tool_turn(*calls: Dict[str, Any], content: str = "") -> List[Dict[str, Any]]:
    return [
        {"message": {"role": "assistant", "content": content, "tool_calls": list(calls)}, "done": False},
        {"message": {"role": "assistant", "content": ""}, "done": True},
    ]


def call(call_id: str, name: str, arguments: Any) -> Dict[str, Any]:
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


class ScriptedClient:
    """Replays canned NDJSON turns through the real stream parser."""

    def __init__(self, turns: Sequence[List[Dict[str, Any]]], fragment: Optional[int] = None, repeat_last: bool = False):
        self.turns = list(turns)
        self.fragment = fragment
        self.repeat_last = repeat_last
        self.requests: List[Dict[str, Any]] = []

    async def chat(self, messages: Sequence[Message], tools=None, extra=None):
        self.requests.append({"messages": list(messages), "tools": tools, "extra": extra})
        index = len(self.requests) - 1
        if index >= len(self.turns):
            if not self.repeat_last:
                raise AssertionError("ScriptedClient ran out of turns")
            index = len(self.turns) - 1
        body = ndjson(self.turns[index])
        size = self.fragment or len(body) or 1

        async def _chunks():
            for start in range(0, len(body), size):
                yield body[start : start + size]

        async for event in parse_stream(_chunks()):
            yield event
