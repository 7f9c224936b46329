"""Wires configuration, logging, capabilities and a model client into a run."""
from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from typing import Dict, Optional

from .agent import AgentExecutor, EventCallback, RunResult
from .config import DEFAULT_MAX_STEPS, detect_provider, resolve_base_url, resolve_model
from .events import CapabilityCompleted, FinalAnswer, StreamEvent, TextDelta
from .llm import ChatModel, InferenceError, build_client
from .logger import AuditLog, HumanEntry, Logger
from .system_prompt import build_directive
from .tools import discover_capabilities


@dataclass
class RunnerOptions:
    prompt: str
    system_prompt: Optional[str] = None
    custom_instructions: Optional[str] = None
    max_steps: Optional[int] = None
    request_timeout_ms: Optional[int] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    context: Dict[str, str] = field(default_factory=dict)
    log_json_path: Optional[str] = None
    audit_log_path: Optional[str] = None
    enable_human_logs: bool = True
    enable_file_logs: bool = True
    pretty_logs: bool = True
    stream_output: bool = True
    llm_client: Optional[ChatModel] = None


def build_executor(options: RunnerOptions, logger: Logger) -> AgentExecutor:
    provider = options.provider or detect_provider()
    model = options.model or resolve_model()
    client = options.llm_client or build_client(
        provider,
        model,
        base_url=options.base_url or resolve_base_url(),
        timeout_ms=options.request_timeout_ms,
    )
    audit = AuditLog(options.audit_log_path, logger=logger) if options.enable_file_logs else None
    registry = discover_capabilities(audit=audit, logger=logger)
    directive = options.system_prompt or build_directive(registry.names(), options.custom_instructions)
    return AgentExecutor(
        client,
        registry,
        directive=directive,
        max_steps=options.max_steps or DEFAULT_MAX_STEPS,
        logger=logger,
    )


async def run_foreman_async(options: RunnerOptions, on_event: Optional[EventCallback] = None) -> RunResult:
    provider = options.provider or detect_provider()
    model = options.model or resolve_model()
    logger = Logger(
        provider=provider,
        model=model,
        log_json_path=options.log_json_path,
        enable_human_logs=options.enable_human_logs,
        enable_file_logs=options.enable_file_logs,
        pretty=options.pretty_logs,
    )
    executor = build_executor(options, logger)
    printer = _StreamPrinter(logger) if options.stream_output else None

    async def _dispatch(event: StreamEvent) -> None:
        if printer:
            printer(event)
        if on_event:
            result = on_event(event)
            if asyncio.iscoroutine(result):
                await result

    return await executor.run(options.prompt, context=options.context, on_event=_dispatch)


def run_foreman(options: RunnerOptions) -> Optional[str]:
    try:
        result = asyncio.run(run_foreman_async(options))
    except InferenceError:
        # already reported through the logger by the executor
        return None
    return result.output


class _StreamPrinter:
    """Writes text deltas to stdout as they arrive."""

    def __init__(self, logger: Logger) -> None:
        self.logger = logger
        self.open_line = False

    def __call__(self, event: StreamEvent) -> None:
        if isinstance(event, TextDelta):
            sys.stdout.write(event.text)
            sys.stdout.flush()
            self.open_line = True
            return
        self._end_line()
        if isinstance(event, CapabilityCompleted):
            variant = "tool" if event.success else "error"
            self.logger.human(HumanEntry(title=event.call.name, body=event.output, variant=variant))
        elif isinstance(event, FinalAnswer) and event.outcome == "aborted":
            sys.stdout.write(f"{event.text}\n")

    def _end_line(self) -> None:
        if self.open_line:
            sys.stdout.write("\n")
            sys.stdout.flush()
            self.open_line = False
