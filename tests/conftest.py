from __future__ import annotations

import asyncio
import json
import random
from datetime import datetime, timezone

import pytest

from concierge.application.dto.stream_events import (
    StepFinish,
    TextDelta,
    ToolCallArgsDelta,
    ToolCallReady,
    ToolCallStart,
)
from concierge.application.ports.llm import LLMPort
from concierge.application.tools.registry import build_tool_registry
from concierge.application.utils.temporal_context import get_temporal_context
from concierge.domain.entities.tool_result import Usage
from concierge.infrastructure.amenities.mock_availability import MockAmenityAvailability


def fixed_context(iso_instant: str = "2024-03-10T11:00:00+00:00", tz: str = "Europe/Madrid"):
    """Temporal context pinned to a known instant (2024-03-10 is a Sunday)."""
    return get_temporal_context(tz, "es-ES", now=datetime.fromisoformat(iso_instant))


def text_step(text: str, prompt_tokens: int = 10, completion_tokens: int = 5) -> list:
    return [
        TextDelta(text),
        StepFinish(finish_reason="stop", usage=Usage(prompt_tokens, completion_tokens)),
    ]


def tool_step(*calls: tuple[str, str, dict | str]) -> list:
    """One step in which the model asks for each (call_id, tool_name, args) in order."""
    events: list = []
    for call_id, name, args in calls:
        raw = args if isinstance(args, str) else json.dumps(args)
        events.append(ToolCallStart(tool_call_id=call_id, tool_name=name))
        events.append(ToolCallArgsDelta(tool_call_id=call_id, delta=raw))
    for call_id, name, args in calls:
        raw = args if isinstance(args, str) else json.dumps(args)
        events.append(ToolCallReady(tool_call_id=call_id, tool_name=name, arguments=raw))
    events.append(StepFinish(finish_reason="tool_calls", usage=Usage(20, 8)))
    return events


class ScriptedLLM(LLMPort):
    """Replays one scripted list of events per step. An Exception entry is raised at that point."""

    def __init__(self, steps: list[list], delay: float = 0.0) -> None:
        self.steps = list(steps)
        self.delay = delay
        self.calls: list[dict] = []

    async def stream_step(self, system_prompt, messages, tools, temperature):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "tools": list(tools),
                "temperature": temperature,
            }
        )
        if not self.steps:
            raise AssertionError("ScriptedLLM ran out of steps")
        for item in self.steps.pop(0):
            if self.delay:
                await asyncio.sleep(self.delay)
            if isinstance(item, BaseException):
                raise item
            yield item


@pytest.fixture
def context():
    return fixed_context()


@pytest.fixture
def availability():
    return MockAmenityAvailability(unavailable_rate=0.0, latency_ms=0, rng=random.Random(7))


@pytest.fixture
def registry(availability):
    return build_tool_registry(availability, booking_window_days=14)


def run(coro):
    return asyncio.run(coro)


async def collect(agen) -> list:
    return [event async for event in agen]
