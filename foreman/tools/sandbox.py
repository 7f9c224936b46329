"""Isolated JavaScript execution for model-authored code, using quickjs.

Each evaluation runs in a fresh QuickJS context inside a child process. The
context has no filesystem, network or module bindings: only ``console`` and
the JSON globals the caller injects. Time is bounded only by killing the
child: a QuickJS time limit would reject the ``console`` callbacks. Heap
size is bounded inside QuickJS.
"""

from __future__ import annotations

import json
import multiprocessing as mp
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import quickjs

from ..config import env_int

SANDBOX_TIMEOUT_MS = env_int("FOREMAN_SANDBOX_TIMEOUT_MS", 5000)
SANDBOX_MEMORY_LIMIT = env_int("FOREMAN_SANDBOX_MEMORY_BYTES", 64 * 1024 * 1024)
GLOBAL_NAME = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
MAX_CONSOLE_LINES = 200


class SandboxError(RuntimeError):
    """Raised when sandboxed code fails, times out or returns nothing usable."""


@dataclass
class SandboxOutcome:
    status: str
    result: Any = None
    logs: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def run_sandboxed(
    body: str,
    *,
    data: Optional[Dict[str, Any]] = None,
    timeout_ms: Optional[int] = None,
    memory_limit: Optional[int] = None,
) -> SandboxOutcome:
    """Evaluate ``body`` as a JavaScript function body and return its value.

    ``data`` maps global names to JSON-serializable values that are defined as
    constants before the body runs. The return value must survive
    ``JSON.stringify``.
    """
    globals_json: Dict[str, str] = {}
    for name, value in (data or {}).items():
        if not GLOBAL_NAME.fullmatch(name):
            raise ValueError(f"Invalid sandbox global name: {name}")
        try:
            globals_json[name] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Sandbox global '{name}' must be JSON-serializable") from exc

    timeout = timeout_ms if timeout_ms is not None else SANDBOX_TIMEOUT_MS
    memory = memory_limit if memory_limit is not None else SANDBOX_MEMORY_LIMIT

    parent_conn, child_conn = mp.Pipe(duplex=False)
    proc = mp.Process(target=_sandbox_worker, args=(child_conn, body, globals_json, memory), daemon=True)
    proc.start()
    child_conn.close()
    try:
        # read before joining: a large result would otherwise block the child on a full pipe
        if not parent_conn.poll(timeout / 1000.0):
            proc.terminate()
            proc.join()
            return SandboxOutcome(status="timeout", error=f"Execution timed out after {timeout}ms")
        try:
            status, payload, logs = parent_conn.recv()
        except EOFError:
            proc.join()
            return SandboxOutcome(status="error", error=f"Sandbox exited without a result (code {proc.exitcode})")
    finally:
        parent_conn.close()
    proc.join()
    if status != "ok":
        return SandboxOutcome(status=status, logs=logs, error=payload)
    return SandboxOutcome(status="ok", result=json.loads(payload) if payload else None, logs=logs)


def _sandbox_worker(conn, body: str, globals_json: Dict[str, str], memory_limit: int) -> None:
    logs: List[str] = []

    def _log(prefix: str, *values) -> None:
        if len(logs) >= MAX_CONSOLE_LINES:
            return
        rendered = " ".join(str(v) for v in values)
        logs.append(f"{prefix}: {rendered}" if rendered else prefix)

    status = "ok"
    payload: Optional[str] = None
    try:
        ctx = quickjs.Context()
        ctx.set_memory_limit(memory_limit)
        ctx.add_callable("__console_log", lambda *values: _log("log", *values))
        ctx.add_callable("__console_warn", lambda *values: _log("warn", *values))
        ctx.add_callable("__console_error", lambda *values: _log("error", *values))
        ctx.eval(
            "const console={log:(...a)=>__console_log(...a),warn:(...a)=>__console_warn(...a),error:(...a)=>__console_error(...a)};"
        )
        for name, value_json in globals_json.items():
            ctx.eval(f"const {name} = {value_json};")
        result = ctx.eval(
            "(function(){ const __r = (function(){\n" + body + "\n})(); return __r === undefined ? undefined : JSON.stringify(__r); })()"
        )
        payload = result if isinstance(result, str) else None
    except quickjs.JSException as exc:
        status, payload = "error", str(exc)
    except Exception as exc:  # noqa: BLE001
        status, payload = "error", f"{exc.__class__.__name__}: {exc}"
    conn.send((status, payload, logs))
    conn.close()


def require_ok(outcome: SandboxOutcome) -> SandboxOutcome:
    if not outcome.ok:
        raise SandboxError(outcome.error or outcome.status)
    return outcome
