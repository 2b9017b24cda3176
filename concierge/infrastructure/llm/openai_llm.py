from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Sequence

import openai
from openai import AsyncOpenAI

from concierge.application.dto.stream_events import (
    ModelEvent,
    StepFinish,
    TextDelta,
    ToolCallArgsDelta,
    ToolCallReady,
    ToolCallStart,
)
from concierge.application.exceptions import LLMContractError, LLMUpstreamError
from concierge.application.ports.llm import LLMPort
from concierge.domain.entities.tool_result import Usage
from concierge.domain.entities.transcript import ConversationMessage, MessageRole, ToolInvocationState


def to_openai_messages(system_prompt: str, messages: Sequence[ConversationMessage]) -> list[dict[str, Any]]:
    """Flatten the transcript into chat-completions messages; resolved tool calls become tool messages."""
    out: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for m in messages:
        if m.role is not MessageRole.assistant:
            out.append({"role": m.role.value, "content": m.content})
            continue

        resolved = [inv for inv in m.tool_invocations if inv.state is ToolInvocationState.result]
        if not m.content and not resolved:
            continue

        msg: dict[str, Any] = {"role": "assistant", "content": m.content or None}
        if resolved:
            msg["tool_calls"] = [
                {
                    "id": inv.tool_call_id,
                    "type": "function",
                    "function": {
                        "name": inv.tool_name,
                        "arguments": json.dumps(inv.args) if inv.args is not None else inv.args_text,
                    },
                }
                for inv in resolved
            ]
        out.append(msg)
        for inv in resolved:
            out.append(
                {
                    "role": "tool",
                    "tool_call_id": inv.tool_call_id,
                    "content": json.dumps(inv.result, ensure_ascii=False, default=str),
                }
            )
    return out


class OpenAILLM(LLMPort):
    """
    OpenAI-backed adapter implementing LLMPort with streamed chat completions.

    Raises:
        LLMUpstreamError: networking/provider failures
        LLMContractError: tool-call frames without id or name
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self._logger = logging.getLogger(__name__)

    async def stream_step(
        self,
        system_prompt: str,
        messages: Sequence[ConversationMessage],
        tools: Sequence[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[ModelEvent]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(system_prompt, messages),
            "temperature": temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            kwargs["tools"] = list(tools)
            kwargs["tool_choice"] = "auto"

        try:
            stream = await self.client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise LLMUpstreamError(f"OpenAI API error: {e}") from e

        calls: dict[int, dict[str, str]] = {}
        finish_reason = "stop"
        usage = Usage()

        try:
            async for chunk in stream:
                if getattr(chunk, "usage", None):
                    usage = Usage(
                        prompt_tokens=chunk.usage.prompt_tokens or 0,
                        completion_tokens=chunk.usage.completion_tokens or 0,
                    )
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if delta is not None:
                    if delta.content:
                        yield TextDelta(delta.content)
                    for tc in delta.tool_calls or []:
                        entry = calls.get(tc.index)
                        if entry is None:
                            name = tc.function.name if tc.function else None
                            if not tc.id or not name:
                                raise LLMContractError("Tool call started without id or name.")
                            entry = {"id": tc.id, "name": name, "arguments": ""}
                            calls[tc.index] = entry
                            yield ToolCallStart(tool_call_id=tc.id, tool_name=name)
                        fragment = tc.function.arguments if tc.function else None
                        if fragment:
                            entry["arguments"] += fragment
                            yield ToolCallArgsDelta(tool_call_id=entry["id"], delta=fragment)
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except openai.OpenAIError as e:
            raise LLMUpstreamError(f"OpenAI API error: {e}") from e

        for index in sorted(calls):
            entry = calls[index]
            yield ToolCallReady(tool_call_id=entry["id"], tool_name=entry["name"], arguments=entry["arguments"])

        self._logger.debug(
            "OpenAI step finished",
            extra={"reason": finish_reason, "prompt_tokens": usage.prompt_tokens, "completion_tokens": usage.completion_tokens},
        )
        yield StepFinish(finish_reason=finish_reason, usage=usage)
