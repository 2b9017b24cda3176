from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator


class MessageRole(str, Enum):
    user = "user"
    assistant = "assistant"
    system = "system"


class ToolInvocationState(str, Enum):
    partial_call = "partial-call"
    pending_call = "pending-call"
    result = "result"


class InvalidInvocationTransition(ValueError):
    pass


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:12]}"


@dataclass
class ToolInvocation:
    """
    One tool call inside an assistant message.

    State only moves forward: partial-call -> pending-call -> result.
    """

    tool_call_id: str
    tool_name: str
    state: ToolInvocationState = ToolInvocationState.partial_call
    args_text: str = ""
    args: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    is_error: bool = False

    def append_args(self, delta: str) -> None:
        if self.state is not ToolInvocationState.partial_call:
            raise InvalidInvocationTransition(
                f"Cannot stream arguments into {self.tool_call_id} in state {self.state.value}"
            )
        self.args_text += delta

    def mark_called(self, args: dict[str, Any] | None, args_text: str | None = None) -> None:
        if self.state is not ToolInvocationState.partial_call:
            raise InvalidInvocationTransition(
                f"Tool call {self.tool_call_id} is already {self.state.value}"
            )
        if args_text is not None:
            self.args_text = args_text
        self.args = args
        self.state = ToolInvocationState.pending_call

    def resolve(self, result: dict[str, Any], is_error: bool = False) -> None:
        if self.state is not ToolInvocationState.pending_call:
            raise InvalidInvocationTransition(
                f"Tool call {self.tool_call_id} cannot receive a result in state {self.state.value}"
            )
        self.result = result
        self.is_error = is_error
        self.state = ToolInvocationState.result


@dataclass
class ConversationMessage:
    role: MessageRole
    content: str = ""
    id: str = field(default_factory=new_message_id)
    timestamp: float = field(default_factory=time.time)
    tool_invocations: list[ToolInvocation] = field(default_factory=list)


class Transcript:
    """Append-only log of conversation turns. Sole owner of messages and tool invocations."""

    def __init__(self, messages: Iterable[ConversationMessage] = ()) -> None:
        self._messages: list[ConversationMessage] = []
        self._ids: set[str] = set()
        for message in messages:
            self.append(message)

    def append(self, message: ConversationMessage) -> ConversationMessage:
        if message.id in self._ids:
            raise ValueError(f"Duplicate message id: {message.id}")
        self._ids.add(message.id)
        self._messages.append(message)
        return message

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(tuple(self._messages))

    def find_invocation(self, tool_call_id: str) -> ToolInvocation | None:
        for message in self._messages:
            for invocation in message.tool_invocations:
                if invocation.tool_call_id == tool_call_id:
                    return invocation
        return None
