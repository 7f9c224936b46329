"""Streaming chat-completion clients.

The endpoint answers with newline-delimited JSON. Parsing is split in two
transport-independent layers so it can be exercised with arbitrarily
fragmented input:

- ``LineDecoder`` turns raw byte chunks into complete lines
- ``ChunkParser`` turns lines into ``TextDelta`` events plus one terminal
  event (``CapabilityRequested`` or ``FinalAnswer``)
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence

import aiohttp

from .config import DEFAULT_BASE_URL, DEFAULT_REQUEST_TIMEOUT_MS, DEFAULT_TEMPERATURE
from .events import CapabilityRequested, FinalAnswer, StreamEvent, TextDelta
from .types import Message, ToolCallRequest


class InferenceError(Exception):
    """Network or protocol failure while talking to the model endpoint."""


class InferenceTimeout(InferenceError):
    """The request did not complete within the configured timeout."""


class ProtocolError(InferenceError):
    """The endpoint sent something that is not a valid stream chunk."""


class ChatModel(Protocol):
    def chat(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[StreamEvent]:
        ...


class LineDecoder:
    """Accumulates bytes and releases only complete, non-blank lines."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> List[str]:
        self._buffer.extend(data)
        lines: List[str] = []
        while True:
            index = self._buffer.find(b"\n")
            if index < 0:
                break
            raw = bytes(self._buffer[:index])
            del self._buffer[: index + 1]
            line = raw.decode("utf8", errors="replace").strip()
            if line:
                lines.append(line)
        return lines

    def flush(self) -> List[str]:
        raw = bytes(self._buffer)
        self._buffer.clear()
        line = raw.decode("utf8", errors="replace").strip()
        return [line] if line else []


class ChunkParser:
    """Turns decoded stream lines into semantic events for one model turn."""

    def __init__(self) -> None:
        self._text: List[str] = []
        self.tool_calls: List[ToolCallRequest] = []
        self.done = False

    @property
    def text(self) -> str:
        return "".join(self._text)

    def feed_line(self, line: str) -> List[StreamEvent]:
        if self.done:
            return []
        try:
            chunk = json.loads(line)
        except ValueError as exc:
            raise ProtocolError(f"Malformed stream chunk: {line[:200]!r}") from exc
        if not isinstance(chunk, dict):
            raise ProtocolError(f"Stream chunk is not an object: {line[:200]!r}")
        if chunk.get("error"):
            raise ProtocolError(f"Model server error: {chunk['error']}")

        events: List[StreamEvent] = []
        message = chunk.get("message") or {}
        if not isinstance(message, dict):
            raise ProtocolError(f"Stream chunk message is not an object: {line[:200]!r}")
        content = message.get("content")
        if isinstance(content, str) and content:
            self._text.append(content)
            events.append(TextDelta(content))
        raw_calls = message.get("tool_calls")
        if raw_calls:
            if not isinstance(raw_calls, list):
                raise ProtocolError("tool_calls must be a list")
            for raw in raw_calls:
                call = _to_tool_call(raw, len(self.tool_calls))
                if call is not None:
                    self.tool_calls.append(call)
        if chunk.get("done") is True:
            self.done = True
        return events

    def finish(self) -> StreamEvent:
        if self.tool_calls:
            return CapabilityRequested(calls=tuple(self.tool_calls), content=self.text)
        return FinalAnswer(self.text)


async def parse_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    decoder = LineDecoder()
    parser = ChunkParser()
    async for data in chunks:
        for line in decoder.feed(data):
            for event in parser.feed_line(line):
                yield event
        if parser.done:
            break
    else:
        for line in decoder.flush():
            for event in parser.feed_line(line):
                yield event
    yield parser.finish()


def parse_bytes(chunks: Iterable[bytes]) -> Iterator[StreamEvent]:
    """Synchronous twin of ``parse_stream`` for already-buffered input."""
    decoder = LineDecoder()
    parser = ChunkParser()
    for data in chunks:
        for line in decoder.feed(data):
            yield from parser.feed_line(line)
        if parser.done:
            break
    else:
        for line in decoder.flush():
            yield from parser.feed_line(line)
    yield parser.finish()


class EchoClient:
    def __init__(self, model: str) -> None:
        self.model = model

    async def chat(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[StreamEvent]:  # noqa: ARG002
        last_user = next((msg for msg in reversed(messages) if msg.role == "user"), None)
        content = f"Echo: {last_user.content}" if last_user else "Echo"
        yield TextDelta(content)
        yield FinalAnswer(content)


class ChatClient:
    """Streams a chat completion from an Ollama-style ``/api/chat`` endpoint."""

    def __init__(
        self,
        model: str,
        base_url: Optional[str] = None,
        timeout_ms: Optional[int] = DEFAULT_REQUEST_TIMEOUT_MS,
        options: Optional[Dict[str, Any]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.model = model
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_ms = timeout_ms
        self.options = {"temperature": DEFAULT_TEMPERATURE, **(options or {})}
        self._session = session

    @property
    def url(self) -> str:
        return f"{self.base_url}/api/chat"

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": _to_wire_messages(messages),
            "stream": True,
            "options": {**self.options, **(extra or {})},
        }
        if tools:
            body["tools"] = list(tools)
        return body

    async def chat(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[StreamEvent]:
        body = self.build_request(messages, tools, extra)
        timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0 if self.timeout_ms else None)
        session = self._session or aiohttp.ClientSession()
        try:
            async with session.post(self.url, json=body, timeout=timeout) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise InferenceError(f"Model server error: {response.status} {response.reason} {detail}".strip())
                async for event in parse_stream(response.content.iter_any()):
                    yield event
        except asyncio.TimeoutError as exc:
            raise InferenceTimeout(f"Model request timed out after {self.timeout_ms}ms") from exc
        except aiohttp.ClientError as exc:
            raise InferenceError(f"Model request failed: {exc}") from exc
        finally:
            if self._session is None:
                await session.close()


def build_client(
    provider: str,
    model: str,
    base_url: Optional[str] = None,
    timeout_ms: Optional[int] = None,
) -> ChatModel:
    if provider == "ollama":
        return ChatClient(model, base_url=base_url, timeout_ms=timeout_ms or DEFAULT_REQUEST_TIMEOUT_MS)
    return EchoClient(model)


def _to_wire_messages(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    converted: List[Dict[str, Any]] = []
    for msg in messages:
        payload = msg.to_wire()
        if msg.tool_calls:
            # the endpoint expects decoded argument objects on replayed calls
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": _argument_object(call)},
                }
                for call in msg.tool_calls
            ]
        converted.append(payload)
    return converted


def _argument_object(call: ToolCallRequest) -> Any:
    parsed = call.parsed_arguments()
    return parsed if isinstance(parsed, dict) else {}


def _to_tool_call(raw: Any, index: int) -> Optional[ToolCallRequest]:
    if not isinstance(raw, dict):
        return None
    function = raw.get("function") if isinstance(raw.get("function"), dict) else raw
    name = function.get("name")
    if not isinstance(name, str) or not name:
        return None
    arguments = function.get("arguments")
    if arguments is None:
        arguments_text = "{}"
    elif isinstance(arguments, str):
        arguments_text = arguments
    else:
        arguments_text = json.dumps(arguments)
    call_id = raw.get("id")
    if not isinstance(call_id, str) or not call_id:
        call_id = f"call_{index}"
    return ToolCallRequest(id=call_id, name=name, arguments=arguments_text)
