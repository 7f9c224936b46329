"""Agent execution loop: assemble, stream, act, observe, bounded by a step budget."""
from __future__ import annotations

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .config import DEFAULT_MAX_CONSECUTIVE_FAILURES, DEFAULT_MAX_STEPS
from .conversation import ensure_well_formed, trim_history
from .events import (
    CapabilityCompleted,
    CapabilityRequested,
    FinalAnswer,
    RunError,
    RunState,
    StreamEvent,
    TextDelta,
)
from .llm import ChatModel, InferenceError
from .logger import HumanEntry, Logger
from .prompts import ChatPromptTemplate, PromptAssembler
from .system_prompt import build_directive
from .tools.base import CapabilityResult, record_failure
from .tools.registry import CapabilityRegistry
from .types import AgentStep, Message, ToolCallRequest, assistant_message, tool_result_message, user_message
from .utils import safe_json

BUDGET_EXHAUSTED_MESSAGE = "Stopped: step budget exhausted before the agent reached a final answer."

EventCallback = Callable[[StreamEvent], Union[None, Awaitable[None]]]


@dataclass
class RunResult:
    output: str
    state: RunState
    history: List[Message] = field(default_factory=list)
    steps: List[AgentStep] = field(default_factory=list)
    events: List[StreamEvent] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.state == RunState.FINISHED

    @property
    def aborted(self) -> bool:
        return self.state == RunState.ABORTED


class AgentRun:
    """One reasoning episode. Iterate it (once) to drive the loop.

    ``history`` is a private copy of the caller's conversation, extended with
    the user input, assistant messages and tool results produced by this run.
    """

    def __init__(
        self,
        executor: "AgentExecutor",
        history: Sequence[Message],
        context: Mapping[str, Any],
        input: Optional[str] = None,
    ) -> None:
        self.executor = executor
        self.input = input
        self.context: Dict[str, Any] = dict(context)
        self.history: List[Message] = list(history)
        if input:
            self.history.append(user_message(input))
        self.steps: List[AgentStep] = []
        self.state = RunState.ASSEMBLING
        self.step_count = 0
        self.output: Optional[str] = None
        self.error: Optional[str] = None
        self._failures: Dict[str, int] = {}
        self._started = False

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        if self._started:
            raise RuntimeError("An AgentRun can only be iterated once")
        self._started = True
        return self._loop()

    async def _loop(self) -> AsyncIterator[StreamEvent]:
        executor = self.executor
        logger = executor.logger
        while True:
            self.state = RunState.ASSEMBLING
            messages = executor.assembler.assemble(self._prompt_history(), self.steps, self.input)

            self.state = RunState.STREAMING
            deltas: List[str] = []
            content: Optional[str] = None
            calls: List[ToolCallRequest] = []
            try:
                async for event in executor.client.chat(messages, executor.tools, executor.model_options):
                    if isinstance(event, TextDelta):
                        deltas.append(event.text)
                        yield event
                    elif isinstance(event, CapabilityRequested):
                        calls = list(event.calls)
                        content = event.content
                    elif isinstance(event, FinalAnswer):
                        content = event.text
            except InferenceError as err:
                self.state = RunState.FAILED
                self.error = str(err)
                logger.human(HumanEntry(title="model", body=f"step {self.step_count} failed: {err}", variant="error"))
                logger.json({"type": "model_error", "step": self.step_count, "error": str(err), "fatal": True})
                yield RunError(str(err))
                raise
            self.step_count += 1
            if content is None:
                content = "".join(deltas)

            logger.json(
                {
                    "type": "model_response",
                    "step": self.step_count,
                    "content": content,
                    "toolCalls": [{"id": c.id, "name": c.name, "arguments": c.arguments} for c in calls],
                }
            )

            if not calls:
                self.history.append(assistant_message(content))
                self.output = content
                self.state = RunState.FINISHED
                yield FinalAnswer(content, outcome="finished")
                return

            self.state = RunState.ACTING
            logger.human(
                HumanEntry(
                    title="model",
                    body=f"step {self.step_count} -> tool calls: {', '.join(call.name for call in calls)}",
                    variant="model",
                )
            )
            for call in calls:
                yield CapabilityRequested(calls=(call,), content=content)

            tasks = [asyncio.ensure_future(self._execute(call)) for call in calls]
            pending = set(tasks)
            try:
                while pending:
                    done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                    for task in sorted(done, key=tasks.index):
                        result = task.result()
                        yield CapabilityCompleted(
                            call=calls[tasks.index(task)], output=result.output, success=result.success
                        )
            finally:
                for task in pending:
                    task.cancel()

            # history keeps call order regardless of completion order
            self.history.append(assistant_message(content, calls))
            for call, task in zip(calls, tasks):
                result = task.result()
                self.steps.append(AgentStep(action=call, observation=result.output))
                self.history.append(tool_result_message(result.output, call.id))

            if self.step_count >= executor.max_steps:
                self.state = RunState.ABORTED
                self.output = BUDGET_EXHAUSTED_MESSAGE
                logger.human(HumanEntry(title="agent", body=BUDGET_EXHAUSTED_MESSAGE, variant="warn"))
                logger.json({"type": "budget_exhausted", "steps": self.step_count})
                yield FinalAnswer(BUDGET_EXHAUSTED_MESSAGE, outcome="aborted")
                return

    def _prompt_history(self) -> List[Message]:
        limit = self.executor.max_history_messages
        return trim_history(self.history, limit) if limit else self.history

    async def _execute(self, call: ToolCallRequest) -> CapabilityResult:
        executor = self.executor
        failures = self._failures.get(call.name, 0)
        limit = executor.max_consecutive_failures
        if limit and failures >= limit:
            message = f"Tool {call.name} disabled after {failures} consecutive failures in this run."
            await record_failure(
                executor.registry.audit, executor.logger, call.name, message, call.arguments, self.context
            )
            result = CapabilityResult(
                output=json.dumps({"success": False, "error": message}), success=False, error=message
            )
        else:
            executor.logger.human(
                HumanEntry(title=call.name, body=f"args={safe_json(call.parsed_arguments())}", variant="tool")
            )
            result = await executor.registry.execute(call.name, call.arguments, self.context)
            self._failures[call.name] = 0 if result.success else failures + 1
        executor.logger.json(
            {
                "type": "tool_result" if result.success else "tool_error",
                "step": self.step_count,
                "tool": call.name,
                "id": call.id,
                "arguments": call.arguments,
                "output": result.output,
                "error": result.error,
            }
        )
        return result


class AgentExecutor:
    """Drives the reason-act loop for a chat model and a capability registry.

    The registry is frozen on construction and shared by every run started
    from this executor; all other state is owned by the individual ``AgentRun``.
    """

    def __init__(
        self,
        client: ChatModel,
        registry: Optional[CapabilityRegistry] = None,
        directive: Optional[str] = None,
        template: Optional[ChatPromptTemplate] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        max_consecutive_failures: Optional[int] = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        max_history_messages: Optional[int] = None,
        model_options: Optional[Dict[str, Any]] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.client = client
        self.registry = registry if registry is not None else CapabilityRegistry()
        self.registry.freeze()
        self.tools = self.registry.tools()
        self.assembler = PromptAssembler(
            directive if directive is not None else build_directive(self.registry.names()),
            self.registry.descriptors(),
            template,
        )
        self.max_steps = max_steps
        self.max_consecutive_failures = max_consecutive_failures
        self.max_history_messages = max_history_messages
        self.model_options = model_options
        self.logger = logger or Logger.silent()

    def stream(
        self,
        input: Optional[str] = None,
        history: Optional[Sequence[Message]] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> AgentRun:
        history = list(history or [])
        ensure_well_formed(history)
        return AgentRun(self, history, context or {}, input)

    async def run(
        self,
        input: Optional[str] = None,
        history: Optional[Sequence[Message]] = None,
        context: Optional[Mapping[str, Any]] = None,
        on_event: Optional[EventCallback] = None,
    ) -> RunResult:
        agent_run = self.stream(input, history, context)
        events: List[StreamEvent] = []
        async for event in agent_run:
            events.append(event)
            if on_event:
                result = on_event(event)
                if inspect.isawaitable(result):
                    await result
        return RunResult(
            output=agent_run.output or "",
            state=agent_run.state,
            history=list(agent_run.history),
            steps=list(agent_run.steps),
            events=events,
        )
