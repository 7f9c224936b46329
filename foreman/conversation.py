"""Conversation history checks and trimming that keep tool call groups intact."""
from __future__ import annotations

from typing import List, Sequence

from .types import Message


def group_messages(messages: Sequence[Message]) -> List[List[Message]]:
    """Group messages to preserve tool call/response pairs."""
    groups: List[List[Message]] = []
    i = 0
    while i < len(messages):
        msg = messages[i]
        if msg.role == "assistant" and msg.tool_calls:
            tool_call_ids = {call.id for call in msg.tool_calls}
            group = [msg]
            i += 1
            while i < len(messages):
                next_msg = messages[i]
                if next_msg.role == "tool" and next_msg.tool_call_id in tool_call_ids:
                    group.append(next_msg)
                    i += 1
                    continue
                break
            groups.append(group)
            continue
        groups.append([msg])
        i += 1
    return groups


def find_orphaned_tool_results(messages: Sequence[Message]) -> List[Message]:
    """Tool results whose id was never issued by an earlier assistant message."""
    issued: set = set()
    orphans: List[Message] = []
    for msg in messages:
        if msg.role == "assistant":
            issued.update(call.id for call in msg.tool_calls)
        elif msg.role == "tool" and msg.tool_call_id not in issued:
            orphans.append(msg)
    return orphans


def ensure_well_formed(messages: Sequence[Message]) -> None:
    orphans = find_orphaned_tool_results(messages)
    if orphans:
        ids = ", ".join(str(msg.tool_call_id) for msg in orphans)
        raise ValueError(f"History contains tool results with no matching tool call: {ids}")


def trim_history(messages: Sequence[Message], max_messages: int) -> List[Message]:
    """Keep the most recent messages that fit in ``max_messages``.

    A leading system message is always kept and does not count against the
    limit. Tool call groups are kept or dropped as a whole, so trimming never
    produces orphaned tool results.
    """
    if max_messages <= 0 or len(messages) <= max_messages:
        return list(messages)

    head: List[Message] = []
    rest = list(messages)
    if rest and rest[0].role == "system":
        head, rest = [rest[0]], rest[1:]

    kept: List[Message] = []
    for group in reversed(group_messages(rest)):
        if len(kept) + len(group) > max_messages:
            break
        kept = group + kept
    return head + kept
