from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator

from concierge.application.dto.stream_events import TOOL_EVENT_KINDS, TurnEvent
from concierge.application.exceptions import TurnInProgressError
from concierge.application.use_cases.handle_chat import HandleChatUseCase
from concierge.domain.entities.transcript import ConversationMessage, MessageRole, Transcript
from concierge.widgets.amenity_booking import BOOKING_CONFIRMED
from concierge.widgets.base import WidgetAction, WidgetView
from concierge.widgets.renderer import WidgetRenderer


class ChatSession:
    """
    One open chat view: owns the transcript and the widget instances rendered from it.

    Only one turn may stream at a time. Widget actions come back through
    `handle_action`, which is the only place that turns UI interaction into a
    new transcript entry.
    """

    def __init__(self, handle_chat: HandleChatUseCase) -> None:
        self._handle_chat = handle_chat
        self._loading = False
        self._logger = logging.getLogger(__name__)
        self.reset()

    @property
    def is_loading(self) -> bool:
        return self._loading

    def reset(self) -> None:
        if self._loading:
            raise TurnInProgressError("Cannot reset the session while a turn is in progress.")
        self.transcript = Transcript()
        self.renderer = WidgetRenderer(self._handle_chat.registry, on_action=self.handle_action)

    async def submit(self, text: str) -> AsyncIterator[TurnEvent]:
        if self._loading:
            raise TurnInProgressError("A turn is already in progress for this session.")
        self.transcript.append(ConversationMessage(role=MessageRole.user, content=text))
        async with aclosing(self.respond()) as events:
            async for event in events:
                yield event

    async def respond(self) -> AsyncIterator[TurnEvent]:
        """Run a turn for the transcript as it stands, e.g. after a widget confirmation."""
        if self._loading:
            raise TurnInProgressError("A turn is already in progress for this session.")
        self._loading = True
        try:
            async with aclosing(self._handle_chat.stream(self.transcript)) as events:
                async for event in events:
                    yield event
        finally:
            self._loading = False

    def render(self, event: TurnEvent) -> WidgetView | None:
        if event.kind not in TOOL_EVENT_KINDS or event.invocation is None:
            return None
        return self.renderer.render(event.invocation)

    def handle_action(self, action: WidgetAction) -> ConversationMessage | None:
        if action.type != BOOKING_CONFIRMED:
            self._logger.info("Widget action ignored", extra={"reason": action.type})
            return None
        if self._loading:
            raise TurnInProgressError("Wait for the current turn to finish before confirming.")

        slot = action.payload.get("slot") or {}
        confirmation = action.payload.get("confirmation") or {}
        amenity = confirmation.get("amenityName") or action.payload.get("amenityType", "")
        content = (
            f"He confirmado la reserva de {amenity} el {action.payload.get('date')} "
            f"de {slot.get('startTime')} a {slot.get('endTime')}."
        )
        if confirmation.get("confirmationCode"):
            content += f" Código: {confirmation['confirmationCode']}."
        message = self.transcript.append(ConversationMessage(role=MessageRole.user, content=content))
        self._logger.info("Booking confirmed from widget", extra={"reason": action.type})
        return message
