from __future__ import annotations

from concierge.domain.entities.transcript import ToolInvocation
from concierge.widgets.base import WidgetStatus, WidgetView

GENERIC_ERROR_MESSAGE = "No se ha podido completar la acción. Inténtalo de nuevo."


def spinner_view(invocation: ToolInvocation) -> WidgetView:
    return WidgetView(
        widget="spinner",
        status=WidgetStatus.loading,
        tool_call_id=invocation.tool_call_id,
        tool_name=invocation.tool_name,
        props={"label": "Procesando..."},
        text="Procesando...",
    )


def unavailable_view(invocation: ToolInvocation) -> WidgetView:
    message = f"Widget no disponible: {invocation.tool_name}"
    return WidgetView(
        widget="unavailable",
        status=WidgetStatus.unavailable,
        tool_call_id=invocation.tool_call_id,
        tool_name=invocation.tool_name,
        props={"message": message},
        text=message,
    )


def error_view(invocation: ToolInvocation, message: str | None = None) -> WidgetView:
    if message is None:
        error = (invocation.result or {}).get("error") or {}
        message = error.get("userMessage") or GENERIC_ERROR_MESSAGE
    return WidgetView(
        widget="error",
        status=WidgetStatus.error,
        tool_call_id=invocation.tool_call_id,
        tool_name=invocation.tool_name,
        props={"message": message},
        text=f"⚠ {message}",
    )
