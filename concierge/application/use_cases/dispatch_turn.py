from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, AsyncIterator

from concierge.application.dto.stream_events import (
    ModelEvent,
    StepFinish,
    TextDelta,
    ToolCallArgsDelta,
    ToolCallReady,
    ToolCallStart,
    TurnEvent,
    TurnEventKind,
)
from concierge.application.exceptions import InvalidToolInput, LLMContractError, LLMUpstreamError
from concierge.application.ports.llm import LLMPort
from concierge.application.tools.registry import ToolRegistry
from concierge.application.utils.error_messages import describe_upstream_error
from concierge.domain.entities.temporal_context import TemporalContext
from concierge.domain.entities.tool_result import ToolResult, Usage
from concierge.domain.entities.transcript import (
    ConversationMessage,
    InvalidInvocationTransition,
    MessageRole,
    ToolInvocation,
    ToolInvocationState,
    Transcript,
)

INVALID_INPUT_USER_MESSAGE = "Faltan datos o no son válidos para completar la solicitud."
UNKNOWN_TOOL_USER_MESSAGE = "Esta función todavía no está disponible."
TOOL_FAILURE_USER_MESSAGE = "No se ha podido completar la acción. Inténtalo de nuevo."


class DispatchState(str, Enum):
    awaiting_model = "awaiting_model"
    model_responding = "model_responding"
    tool_executing = "tool_executing"
    complete = "complete"


class TurnOutcome(str, Enum):
    finished = "finished"
    step_limit = "step_limit"
    upstream_error = "upstream_error"


_END_OF_STREAM = object()


def _decode_arguments(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text) if text and text.strip() else {}
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


class DispatchTurnUseCase:
    """
    Bounded model -> tools -> model cycle for one user turn.

    `run` is an async generator of TurnEvents. A step's assistant message is
    appended to the transcript only after its model stream and tool calls have
    completed. One run per instance at a time.
    """

    def __init__(
        self,
        llm: LLMPort,
        registry: ToolRegistry,
        max_steps: int = 5,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self._llm = llm
        self._registry = registry
        self._max_steps = max_steps
        self._temperature = temperature
        self._timeout_seconds = timeout_seconds
        self.state = DispatchState.awaiting_model
        self._logger = logging.getLogger(__name__)

    async def run(
        self,
        transcript: Transcript,
        context: TemporalContext,
        system_prompt: str,
    ) -> AsyncIterator[TurnEvent]:
        deadline = asyncio.get_running_loop().time() + self._timeout_seconds
        tools = self._registry.function_schemas()
        total_usage = Usage()
        outcome = TurnOutcome.finished
        step = 0

        while True:
            step += 1
            self.state = DispatchState.awaiting_model
            draft = ConversationMessage(role=MessageRole.assistant)
            open_calls: dict[str, ToolInvocation] = {}
            step_usage = Usage()
            finish_reason = "stop"
            started = False

            stream = self._llm.stream_step(system_prompt, transcript.messages, tools, self._temperature)
            iterator = stream.__aiter__()
            try:
                while True:
                    event = await self._next_event(iterator, deadline)
                    if event is _END_OF_STREAM:
                        break
                    if not started:
                        started = True
                        self.state = DispatchState.model_responding
                        yield TurnEvent(TurnEventKind.step_start, {"step": step})

                    if isinstance(event, StepFinish):
                        finish_reason = event.finish_reason
                        step_usage = event.usage
                        continue
                    turn_event = self._apply_model_event(event, draft, open_calls)
                    if turn_event is not None:
                        yield turn_event
            except (LLMUpstreamError, LLMContractError, InvalidInvocationTransition) as e:
                category, message = describe_upstream_error(e)
                self._logger.warning(
                    "Model stream failed",
                    extra={"step": step, "reason": category, "error": str(e)},
                )
                outcome = TurnOutcome.upstream_error
                yield TurnEvent(TurnEventKind.error, {"step": step, "category": category, "message": message})
                break
            finally:
                aclose = getattr(iterator, "aclose", None)
                if aclose is not None:
                    await aclose()

            if not started:
                yield TurnEvent(TurnEventKind.step_start, {"step": step})
            total_usage = total_usage + step_usage

            # Calls whose arguments never got a closing frame are executed with what arrived.
            for invocation in draft.tool_invocations:
                if invocation.state is ToolInvocationState.partial_call:
                    invocation.mark_called(_decode_arguments(invocation.args_text))
                    yield self._tool_call_event(invocation)

            if draft.tool_invocations:
                self.state = DispatchState.tool_executing
                tasks = [
                    asyncio.ensure_future(self._execute_one(invocation, context))
                    for invocation in draft.tool_invocations
                ]
                try:
                    for next_done in asyncio.as_completed(tasks):
                        invocation, result = await next_done
                        invocation.resolve(result.payload, is_error=result.is_error)
                        yield TurnEvent(
                            TurnEventKind.tool_result,
                            {
                                "toolCallId": invocation.tool_call_id,
                                "toolName": invocation.tool_name,
                                "result": result.payload,
                                "isError": result.is_error,
                            },
                            invocation,
                        )
                finally:
                    for task in tasks:
                        if not task.done():
                            task.cancel()

            if draft.content or draft.tool_invocations:
                transcript.append(draft)

            continues = bool(draft.tool_invocations) and step < self._max_steps
            yield TurnEvent(
                TurnEventKind.step_finish,
                {
                    "step": step,
                    "finishReason": finish_reason,
                    "usage": step_usage.to_payload(),
                    "isContinued": continues,
                },
            )

            if not draft.tool_invocations:
                outcome = TurnOutcome.finished
                break
            if step >= self._max_steps:
                outcome = TurnOutcome.step_limit
                self._logger.warning("Step limit reached", extra={"step": step, "outcome": outcome.value})
                break

        self.state = DispatchState.complete
        self._logger.info(
            "Chat turn completed",
            extra={
                "outcome": outcome.value,
                "step": step,
                "prompt_tokens": total_usage.prompt_tokens,
                "completion_tokens": total_usage.completion_tokens,
            },
        )
        yield TurnEvent(
            TurnEventKind.finish,
            {"outcome": outcome.value, "steps": step, "usage": total_usage.to_payload()},
        )

    async def _next_event(self, iterator: AsyncIterator[ModelEvent], deadline: float) -> Any:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise LLMUpstreamError(f"Model stream timed out after {self._timeout_seconds:g}s")
        try:
            return await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
        except StopAsyncIteration:
            return _END_OF_STREAM
        except asyncio.TimeoutError as e:
            raise LLMUpstreamError(f"Model stream timed out after {self._timeout_seconds:g}s") from e

    def _apply_model_event(
        self,
        event: ModelEvent,
        draft: ConversationMessage,
        open_calls: dict[str, ToolInvocation],
    ) -> TurnEvent | None:
        if isinstance(event, TextDelta):
            if not event.text:
                return None
            draft.content += event.text
            return TurnEvent(TurnEventKind.text_delta, {"textDelta": event.text})

        if isinstance(event, ToolCallStart):
            invocation = self._open_call(draft, open_calls, event.tool_call_id, event.tool_name)
            return TurnEvent(
                TurnEventKind.tool_call_streaming_start,
                {"toolCallId": invocation.tool_call_id, "toolName": invocation.tool_name},
                invocation,
            )

        if isinstance(event, ToolCallArgsDelta):
            invocation = open_calls.get(event.tool_call_id)
            if invocation is None:
                raise LLMContractError(f"Arguments received for unknown tool call {event.tool_call_id}")
            invocation.append_args(event.delta)
            return TurnEvent(
                TurnEventKind.tool_call_delta,
                {"toolCallId": invocation.tool_call_id, "argsTextDelta": event.delta},
                invocation,
            )

        if isinstance(event, ToolCallReady):
            invocation = open_calls.get(event.tool_call_id)
            if invocation is None:
                invocation = self._open_call(draft, open_calls, event.tool_call_id, event.tool_name)
            invocation.mark_called(_decode_arguments(event.arguments), args_text=event.arguments)
            return self._tool_call_event(invocation)

        raise LLMContractError(f"Unexpected model event: {type(event).__name__}")

    def _open_call(
        self,
        draft: ConversationMessage,
        open_calls: dict[str, ToolInvocation],
        tool_call_id: str,
        tool_name: str,
    ) -> ToolInvocation:
        if not tool_call_id or not tool_name:
            raise LLMContractError("Tool call without id or name")
        if tool_call_id in open_calls:
            raise LLMContractError(f"Duplicate tool call id: {tool_call_id}")
        invocation = ToolInvocation(tool_call_id=tool_call_id, tool_name=tool_name)
        open_calls[tool_call_id] = invocation
        draft.tool_invocations.append(invocation)
        return invocation

    def _tool_call_event(self, invocation: ToolInvocation) -> TurnEvent:
        return TurnEvent(
            TurnEventKind.tool_call,
            {
                "toolCallId": invocation.tool_call_id,
                "toolName": invocation.tool_name,
                "args": invocation.args if invocation.args is not None else {},
            },
            invocation,
        )

    async def _execute_one(
        self,
        invocation: ToolInvocation,
        context: TemporalContext,
    ) -> tuple[ToolInvocation, ToolResult]:
        name = invocation.tool_name
        log_extra = {"tool_call_id": invocation.tool_call_id, "tool_name": name}

        if self._registry.lookup(name) is None:
            self._logger.warning("Unknown tool requested", extra=log_extra)
            return invocation, ToolResult.failure(
                name,
                "unknown_tool",
                f"Tool '{name}' is not available.",
                userMessage=UNKNOWN_TOOL_USER_MESSAGE,
            )

        raw_input: Any = invocation.args if invocation.args is not None else invocation.args_text
        try:
            result = await self._registry.execute(name, raw_input, context)
        except InvalidToolInput as e:
            self._logger.info("Tool input rejected", extra={**log_extra, "reason": ",".join(e.fields)})
            error = e.to_payload()
            error["userMessage"] = INVALID_INPUT_USER_MESSAGE
            return invocation, ToolResult(tool_name=name, payload={"error": error}, is_error=True)
        except Exception as e:
            self._logger.exception("Tool executor failed", extra={**log_extra, "error": str(e)})
            return invocation, ToolResult.failure(
                name,
                "tool_execution_failed",
                "The tool failed while processing the request.",
                userMessage=TOOL_FAILURE_USER_MESSAGE,
            )

        self._logger.info("Tool executed", extra=log_extra)
        return invocation, result
