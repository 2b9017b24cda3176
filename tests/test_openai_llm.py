"""
Tests for the OpenAI adapter using a fake streaming client.
"""

from __future__ import annotations

import json
from types import SimpleNamespace

import openai
import pytest

from concierge.application.dto.stream_events import StepFinish, TextDelta, ToolCallArgsDelta, ToolCallReady, ToolCallStart
from concierge.application.exceptions import LLMContractError, LLMUpstreamError
from concierge.domain.entities.transcript import (
    ConversationMessage,
    MessageRole,
    ToolInvocation,
    ToolInvocationState,
)
from concierge.infrastructure.llm.openai_llm import OpenAILLM, to_openai_messages

from conftest import collect, run


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None):
    choices = []
    if content is not None or tool_calls is not None or finish_reason is not None:
        choices.append(
            SimpleNamespace(
                delta=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        )
    return SimpleNamespace(choices=choices, usage=usage)


def _tool_delta(index, id=None, name=None, arguments=None):
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


class FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        item = self._chunks.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class FakeClient:
    def __init__(self, chunks=None, error=None):
        self.kwargs = None
        self._chunks = chunks or []
        self._error = error
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.kwargs = kwargs
        if self._error is not None:
            raise self._error
        return FakeStream(self._chunks)


def _resolved_invocation():
    invocation = ToolInvocation(tool_call_id="call_1", tool_name="book_amenity")
    invocation.mark_called({"amenityType": "padel", "date": "tomorrow"})
    invocation.resolve({"amenityName": "Pista de Pádel"})
    return invocation


def test_messages_include_tool_exchange():
    pending = ToolInvocation(tool_call_id="call_2", tool_name="book_amenity")
    messages = [
        ConversationMessage(role=MessageRole.user, content="Reservar pádel mañana"),
        ConversationMessage(role=MessageRole.assistant, content="", tool_invocations=[_resolved_invocation(), pending]),
        ConversationMessage(role=MessageRole.assistant, content="Aquí tienes las horas."),
    ]

    out = to_openai_messages("system prompt", messages)

    assert out[0] == {"role": "system", "content": "system prompt"}
    assert out[1] == {"role": "user", "content": "Reservar pádel mañana"}
    assert out[2]["tool_calls"][0]["id"] == "call_1"
    assert json.loads(out[2]["tool_calls"][0]["function"]["arguments"]) == {"amenityType": "padel", "date": "tomorrow"}
    assert len(out[2]["tool_calls"]) == 1
    assert out[3] == {"role": "tool", "tool_call_id": "call_1", "content": '{"amenityName": "Pista de Pádel"}'}
    assert out[4] == {"role": "assistant", "content": "Aquí tienes las horas."}


def test_stream_translates_text_and_tool_calls():
    client = FakeClient(
        [
            _chunk(content="Un momento."),
            _chunk(tool_calls=[_tool_delta(0, id="call_1", name="book_amenity", arguments='{"amenityType":')]),
            _chunk(tool_calls=[_tool_delta(0, arguments=' "padel", "date": "today"}')]),
            _chunk(finish_reason="tool_calls"),
            _chunk(usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30)),
        ]
    )
    llm = OpenAILLM(api_key="sk-test", model="gpt-4o-mini", client=client)
    schema = [{"type": "function", "function": {"name": "book_amenity"}}]

    events = run(collect(llm.stream_step("system", [], schema, 0.7)))

    assert events[0] == TextDelta("Un momento.")
    assert events[1] == ToolCallStart(tool_call_id="call_1", tool_name="book_amenity")
    assert isinstance(events[2], ToolCallArgsDelta) and isinstance(events[3], ToolCallArgsDelta)
    assert events[4] == ToolCallReady(
        tool_call_id="call_1",
        tool_name="book_amenity",
        arguments='{"amenityType": "padel", "date": "today"}',
    )
    assert isinstance(events[5], StepFinish)
    assert events[5].finish_reason == "tool_calls"
    assert events[5].usage.total_tokens == 150

    assert client.kwargs["stream"] is True
    assert client.kwargs["tool_choice"] == "auto"
    assert client.kwargs["stream_options"] == {"include_usage": True}


def test_tool_call_without_name_breaks_contract():
    client = FakeClient([_chunk(tool_calls=[_tool_delta(0, id="call_1", arguments="{}")])])
    llm = OpenAILLM(api_key="sk-test", client=client)

    with pytest.raises(LLMContractError):
        run(collect(llm.stream_step("system", [], [], 0.7)))


def test_provider_errors_become_upstream_errors():
    client = FakeClient(error=openai.OpenAIError("Incorrect API key provided"))
    llm = OpenAILLM(api_key="sk-test", client=client)

    with pytest.raises(LLMUpstreamError) as exc:
        run(collect(llm.stream_step("system", [], [], 0.7)))

    assert "API key" in str(exc.value)
    assert "tools" not in client.kwargs
