from __future__ import annotations

import json
import logging
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

from pydantic import BaseModel, ValidationError

from concierge.application.exceptions import InvalidToolInput, UnknownToolError
from concierge.application.ports.amenity_availability import AmenityAvailabilityPort
from concierge.application.tools.base import Tool, ToolName
from concierge.application.tools.book_amenity import BookAmenityTool
from concierge.application.utils.date_parser import get_available_dates, is_iso_date, resolve_relative_date
from concierge.domain.entities.temporal_context import TemporalContext
from concierge.domain.entities.tool_result import ToolResult
from concierge.widgets.base import WidgetBinding


class ToolRegistry:
    """
    Immutable catalog of callable tools, one entry per ToolName.

    Built once and injected; lookups of unknown names return None.
    """

    def __init__(self, tools: Iterable[Tool], booking_window_days: int = 14) -> None:
        if booking_window_days < 1:
            raise ValueError("booking_window_days must be at least 1")
        entries: dict[ToolName, Tool] = {}
        for tool in tools:
            name = ToolName(tool.name)
            if name in entries:
                raise ValueError(f"Tool registered twice: {name.value}")
            if getattr(tool, "component", None) is None or getattr(tool, "skeleton", None) is None:
                raise ValueError(f"Tool {name.value} must declare both a component and a skeleton")
            entries[name] = tool

        missing = [name.value for name in ToolName if name not in entries]
        if missing:
            raise ValueError(f"Tools without an implementation: {', '.join(missing)}")

        self._tools: Mapping[ToolName, Tool] = MappingProxyType(entries)
        self._booking_window_days = booking_window_days
        self._logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def lookup(self, name: str) -> Tool | None:
        tool_name = ToolName.parse(name)
        if tool_name is None:
            return None
        return self._tools[tool_name]

    def resolve_widget(self, name: str) -> WidgetBinding | None:
        tool = self.lookup(name)
        if tool is None:
            self._logger.warning("Unknown widget requested", extra={"tool_name": name})
            return None
        return tool.widget_binding()

    def function_schemas(self) -> list[dict[str, Any]]:
        return [tool.to_openai_function_schema() for tool in self._tools.values()]

    async def execute(self, name: str, raw_input: Any, context: TemporalContext) -> ToolResult:
        tool = self.lookup(name)
        if tool is None:
            raise UnknownToolError(name)

        params = self.validate(tool, raw_input)
        params = self._resolve_dates(tool, params, context)
        result = await tool.execute(params, context)
        payload = result.to_payload() if hasattr(result, "to_payload") else dict(result)
        return ToolResult(tool_name=tool.name.value, payload=payload)

    def validate(self, tool: Tool, raw_input: Any) -> BaseModel:
        tool_name = tool.name.value
        if isinstance(raw_input, str):
            try:
                raw_input = json.loads(raw_input) if raw_input.strip() else {}
            except ValueError:
                raise InvalidToolInput(
                    tool_name, ["arguments"], [{"field": "arguments", "message": "Arguments are not valid JSON"}]
                )
        if not isinstance(raw_input, Mapping):
            raise InvalidToolInput(
                tool_name, ["arguments"], [{"field": "arguments", "message": "Arguments must be a JSON object"}]
            )

        try:
            return tool.parameters.model_validate(dict(raw_input))
        except ValidationError as e:
            fields: list[str] = []
            errors: list[dict[str, Any]] = []
            for err in e.errors():
                field = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
                if field not in fields:
                    fields.append(field)
                errors.append({"field": field, "message": err.get("msg", "")})
            raise InvalidToolInput(tool_name, fields, errors) from e

    def _resolve_dates(self, tool: Tool, params: BaseModel, context: TemporalContext) -> BaseModel:
        if not tool.date_fields:
            return params

        bookable = get_available_dates(context, self._booking_window_days)
        updates: dict[str, str] = {}
        for field in tool.date_fields:
            value = getattr(params, field)
            if value is None:
                continue
            wire_name = tool.parameters.model_fields[field].alias or field
            resolved = resolve_relative_date(value, context)
            if not is_iso_date(resolved):
                raise InvalidToolInput(
                    tool.name.value,
                    [wire_name],
                    [{"field": wire_name, "message": "Use 'today', 'tomorrow', 'next_week' or a date in YYYY-MM-DD format"}],
                )
            if resolved not in bookable:
                raise InvalidToolInput(
                    tool.name.value,
                    [wire_name],
                    [{"field": wire_name, "message": f"Date must be between {bookable[0]} and {bookable[-1]}"}],
                )
            updates[field] = resolved
        return params.model_copy(update=updates)


def build_tool_registry(availability: AmenityAvailabilityPort, booking_window_days: int = 14) -> ToolRegistry:
    return ToolRegistry(
        [BookAmenityTool(availability=availability)],
        booking_window_days=booking_window_days,
    )
