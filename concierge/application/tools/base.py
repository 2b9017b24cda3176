from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel

from concierge.domain.entities.temporal_context import TemporalContext
from concierge.widgets.base import WidgetBinding, WidgetComponent, WidgetSkeleton


class ToolName(str, Enum):
    """Closed set of tools the model may call. Wire names are the enum values."""

    book_amenity = "book_amenity"

    @classmethod
    def parse(cls, name: str) -> "ToolName | None":
        try:
            return cls(name)
        except ValueError:
            return None


class Tool(ABC):
    name: ToolName
    description: str = "Base tool description"
    parameters: type[BaseModel]
    component: type[WidgetComponent]
    skeleton: type[WidgetSkeleton]
    display_name: str = ""
    category: str = "amenities"
    # Parameter attributes holding 'today' / 'tomorrow' / 'next_week' or an ISO date.
    date_fields: tuple[str, ...] = ()

    def to_openai_function_schema(self) -> Dict[str, Any]:
        """Convert tool to OpenAI function schema"""
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": self.parameters.model_json_schema(),
            },
        }

    def widget_binding(self) -> WidgetBinding:
        return WidgetBinding(
            component=self.component,
            skeleton=self.skeleton,
            display_name=self.display_name or self.name.value,
            category=self.category,
        )

    @abstractmethod
    async def execute(self, params: BaseModel, context: TemporalContext) -> Any:
        """Produce the widget data for validated params. Dates are already resolved."""
        pass
