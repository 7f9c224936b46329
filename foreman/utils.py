"""General utilities shared across foreman modules."""
from __future__ import annotations

import json
from typing import Any


def safe_json(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return "<unserializable>"


def truncate_output(body: str, max_chars: int) -> str:
    if max_chars <= 0 or len(body) <= max_chars:
        return body
    return f"{body[:max_chars]}\n[truncated]"
