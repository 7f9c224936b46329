"""Human, JSON and audit logging helpers."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.theme import Theme

from .config import DEFAULT_AUDIT_PATH, DEFAULT_LOG_PATH


@dataclass
class HumanEntry:
    title: Optional[str] = None
    body: Optional[str] = None
    variant: str = "info"


class Logger:
    def __init__(
        self,
        provider: str,
        model: str,
        log_json_path: Optional[str] = None,
        enable_human_logs: bool = True,
        enable_file_logs: bool = True,
        pretty: bool = True,
    ) -> None:
        self.provider = provider
        self.model = model
        self.log_path = Path(log_json_path or DEFAULT_LOG_PATH)
        self.enable_human_logs = enable_human_logs
        self.enable_file_logs = enable_file_logs
        self.pretty = pretty
        self.console = Console(theme=_theme(), highlight=False, stderr=True) if pretty else None

    @classmethod
    def silent(cls, provider: str = "echo", model: str = "") -> "Logger":
        return cls(provider=provider, model=model, enable_human_logs=False, enable_file_logs=False, pretty=False)

    def human(self, entry: HumanEntry) -> None:
        if not self.enable_human_logs:
            return
        title = entry.title or "info"
        body = entry.body or ""
        variant = entry.variant or "info"
        if self.console:
            style = {
                "error": "red",
                "warn": "yellow",
                "model": "cyan",
                "tool": "green",
            }.get(variant, "cyan")
            prefix = {
                "error": "[error]",
                "warn": "[warn]",
                "model": "[model]",
                "tool": "[tool]",
            }.get(variant, "[info]")
            self.console.print(f"{prefix} {title}", markup=False)
            if body:
                self.console.print(body, style=style, markup=False)
            return
        print(f"{title}: {body}")

    def json(self, entry: Dict[str, Any]) -> None:
        if not self.enable_file_logs:
            return
        payload: Dict[str, Any] = {
            "timestamp": _utc_now_iso(),
            "provider": self.provider,
            "model": self.model,
            **entry,
        }
        try:
            with self.log_path.open("a", encoding="utf8") as fh:
                fh.write(json.dumps(payload, default=str))
                fh.write("\n")
        except OSError:
            if self.console:
                self.console.print("log write failed", style="red")


class AuditLog:
    """Append-only JSONL sink for capability failures.

    Writes happen in a worker thread so concurrent capabilities never block
    the event loop on disk I/O. Each record is a single ``write`` call on a
    file opened in append mode, so concurrent writers do not interleave lines.
    """

    def __init__(self, path: Optional[str] = None, logger: Optional[Logger] = None) -> None:
        self.path = Path(path or DEFAULT_AUDIT_PATH)
        self.logger = logger

    async def record(self, entry: Dict[str, Any]) -> None:
        record = {"ts": _utc_now_iso(), **entry}
        line = json.dumps(record, default=str) + "\n"
        try:
            await asyncio.to_thread(self._append, line)
        except OSError as err:
            if self.logger:
                self.logger.human(HumanEntry(title="audit", body=f"audit write failed: {err}", variant="warn"))

    def _append(self, line: str) -> None:
        with self.path.open("a", encoding="utf8") as handle:
            handle.write(line)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _theme() -> Theme:
    return Theme(
        {
            "info": "cyan",
            "warn": "yellow",
            "error": "red",
            "model": "cyan",
            "tool": "green",
        }
    )
