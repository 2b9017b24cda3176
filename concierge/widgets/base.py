from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping


class WidgetStatus(str, Enum):
    loading = "loading"
    complete = "complete"
    error = "error"
    unavailable = "unavailable"


@dataclass(frozen=True)
class WidgetAction:
    type: str
    payload: dict[str, Any] = field(default_factory=dict)


ActionHandler = Callable[[WidgetAction], None]


@dataclass(frozen=True)
class WidgetView:
    widget: str
    status: WidgetStatus
    tool_call_id: str
    tool_name: str
    props: dict[str, Any] = field(default_factory=dict)
    text: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "widget": self.widget,
            "status": self.status.value,
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "props": self.props,
        }


class WidgetComponent(ABC):
    """Result view of a tool. Holds its own interactive state; never writes to the transcript."""

    widget_name: str = "component"

    def __init__(self, data: Mapping[str, Any], on_action: ActionHandler | None = None) -> None:
        self._on_action = on_action

    def emit(self, action: WidgetAction) -> WidgetAction:
        if self._on_action is not None:
            self._on_action(action)
        return action

    @abstractmethod
    def props(self) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def render_text(self) -> str:
        raise NotImplementedError


class WidgetSkeleton(ABC):
    """Placeholder shaped like the final widget, shown while the tool call is in flight."""

    widget_name: str = "skeleton"

    @abstractmethod
    def props(self) -> dict[str, Any]:
        raise NotImplementedError

    def render_text(self) -> str:
        return "..."


@dataclass(frozen=True)
class WidgetBinding:
    component: type[WidgetComponent]
    skeleton: type[WidgetSkeleton]
    display_name: str
    category: str
