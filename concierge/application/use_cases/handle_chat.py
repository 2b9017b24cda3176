from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, Callable

from concierge.application.dto.stream_events import TurnEvent
from concierge.application.ports.llm import LLMPort
from concierge.application.tools.registry import ToolRegistry
from concierge.application.use_cases.dispatch_turn import DispatchTurnUseCase
from concierge.application.utils.temporal_context import get_temporal_context
from concierge.domain.entities.temporal_context import TemporalContext
from concierge.domain.entities.transcript import Transcript
from concierge.infrastructure.llm.prompts import build_system_prompt


class HandleChatUseCase:
    """Runs one chat turn: fresh temporal context, fresh system prompt, bounded dispatch loop."""

    def __init__(
        self,
        llm: LLMPort,
        registry: ToolRegistry,
        max_steps: int = 5,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
        timezone: str | None = None,
        locale: str | None = None,
        resident_name: str | None = None,
        resident_unit: str | None = None,
        building_name: str = "Meridian Living",
        context_provider: Callable[[], TemporalContext] | None = None,
    ) -> None:
        self._llm = llm
        self.registry = registry
        self._max_steps = max_steps
        self._temperature = temperature
        self._timeout_seconds = timeout_seconds
        self._resident_name = resident_name
        self._resident_unit = resident_unit
        self._building_name = building_name
        self._context_provider = context_provider or (lambda: get_temporal_context(timezone, locale))
        self._logger = logging.getLogger(__name__)

    async def stream(self, transcript: Transcript) -> AsyncIterator[TurnEvent]:
        context = self._context_provider()
        system_prompt = build_system_prompt(
            resident_name=self._resident_name,
            unit=self._resident_unit,
            temporal_context=context,
            building_name=self._building_name,
        )
        dispatch = DispatchTurnUseCase(
            llm=self._llm,
            registry=self.registry,
            max_steps=self._max_steps,
            temperature=self._temperature,
            timeout_seconds=self._timeout_seconds,
        )
        self._logger.info(
            "Processing chat turn",
            extra={"message_count": len(transcript), "current_date": context.current_date},
        )
        async with aclosing(dispatch.run(transcript, context, system_prompt)) as events:
            async for event in events:
                yield event
