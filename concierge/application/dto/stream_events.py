"""Events exchanged between the model port and the dispatch loop, and between the loop and its host."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from concierge.domain.entities.tool_result import Usage
from concierge.domain.entities.transcript import ToolInvocation


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallStart:
    tool_call_id: str
    tool_name: str


@dataclass(frozen=True)
class ToolCallArgsDelta:
    tool_call_id: str
    delta: str


@dataclass(frozen=True)
class ToolCallReady:
    tool_call_id: str
    tool_name: str
    arguments: str  # raw JSON text as produced by the model


@dataclass(frozen=True)
class StepFinish:
    finish_reason: str
    usage: Usage = field(default_factory=Usage)


ModelEvent = Union[TextDelta, ToolCallStart, ToolCallArgsDelta, ToolCallReady, StepFinish]


class TurnEventKind(str, Enum):
    step_start = "step-start"
    text_delta = "text-delta"
    tool_call_streaming_start = "tool-call-streaming-start"
    tool_call_delta = "tool-call-delta"
    tool_call = "tool-call"
    tool_result = "tool-result"
    step_finish = "step-finish"
    finish = "finish"
    error = "error"


TOOL_EVENT_KINDS = frozenset(
    {
        TurnEventKind.tool_call_streaming_start,
        TurnEventKind.tool_call,
        TurnEventKind.tool_result,
    }
)


@dataclass(frozen=True)
class TurnEvent:
    kind: TurnEventKind
    payload: dict[str, Any] = field(default_factory=dict)
    # Reference into the transcript entry being built; not serialized.
    invocation: ToolInvocation | None = field(default=None, compare=False, repr=False)

    def to_frame(self) -> dict[str, Any]:
        return {"type": self.kind.value, **self.payload}
