from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from concierge.domain.entities.transcript import ToolInvocation, ToolInvocationState
from concierge.widgets.base import ActionHandler, WidgetBinding, WidgetComponent, WidgetStatus, WidgetView
from concierge.widgets.fallback import error_view, spinner_view, unavailable_view

if TYPE_CHECKING:
    from concierge.application.tools.registry import ToolRegistry


class WidgetInstance:
    """
    Render state for one tool invocation.

    Loading renders the skeleton (or a spinner when the tool is unknown). Once a
    result has been rendered the instance keeps rendering it.
    """

    def __init__(
        self,
        invocation: ToolInvocation,
        binding: WidgetBinding | None,
        on_action: ActionHandler | None = None,
    ) -> None:
        self.invocation = invocation
        self.binding = binding
        self._on_action = on_action
        self.component: WidgetComponent | None = None
        self._final: WidgetView | None = None
        self._logger = logging.getLogger(__name__)

    def render(self) -> WidgetView:
        if self.component is not None:
            return self._component_view(self.component)
        if self._final is not None:
            return self._final

        invocation = self.invocation
        if invocation.state is not ToolInvocationState.result:
            if self.binding is None:
                return spinner_view(invocation)
            skeleton = self.binding.skeleton()
            return WidgetView(
                widget=skeleton.widget_name,
                status=WidgetStatus.loading,
                tool_call_id=invocation.tool_call_id,
                tool_name=invocation.tool_name,
                props=skeleton.props(),
                text=skeleton.render_text(),
            )

        if self.binding is None:
            self._final = unavailable_view(invocation)
            return self._final
        if invocation.is_error:
            self._final = error_view(invocation)
            return self._final

        try:
            self.component = self.binding.component(invocation.result or {}, on_action=self._on_action)
        except (KeyError, TypeError, ValueError) as e:
            self._logger.warning(
                "Widget payload rejected",
                extra={"tool_call_id": invocation.tool_call_id, "tool_name": invocation.tool_name, "error": str(e)},
            )
            self._final = error_view(invocation)
            return self._final
        return self._component_view(self.component)

    def _component_view(self, component: WidgetComponent) -> WidgetView:
        return WidgetView(
            widget=component.widget_name,
            status=WidgetStatus.complete,
            tool_call_id=self.invocation.tool_call_id,
            tool_name=self.invocation.tool_name,
            props=component.props(),
            text=component.render_text(),
        )


class WidgetRenderer:
    """Maps tool invocations to widget views, one WidgetInstance per tool_call_id."""

    def __init__(self, registry: "ToolRegistry", on_action: ActionHandler | None = None) -> None:
        self._registry = registry
        self._on_action = on_action
        self._instances: dict[str, WidgetInstance] = {}

    def resolve(self, tool_name: str) -> WidgetBinding | None:
        return self._registry.resolve_widget(tool_name)

    def instance_for(self, invocation: ToolInvocation) -> WidgetInstance:
        instance = self._instances.get(invocation.tool_call_id)
        if instance is None:
            instance = WidgetInstance(invocation, self.resolve(invocation.tool_name), self._on_action)
            self._instances[invocation.tool_call_id] = instance
        return instance

    def render(self, invocation: ToolInvocation) -> WidgetView:
        return self.instance_for(invocation).render()

    def latest_component(self, component_type: type[WidgetComponent]) -> WidgetComponent | None:
        for instance in reversed(list(self._instances.values())):
            if isinstance(instance.component, component_type):
                return instance.component
        return None
