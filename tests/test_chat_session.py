"""
End-to-end tests for a chat session: streamed turn, widget interaction, confirmation.
"""

from __future__ import annotations

import random

import pytest

from concierge.application.exceptions import TurnInProgressError
from concierge.application.tools.registry import build_tool_registry
from concierge.application.use_cases.chat_session import ChatSession
from concierge.application.use_cases.handle_chat import HandleChatUseCase
from concierge.domain.entities.transcript import MessageRole
from concierge.infrastructure.amenities.mock_availability import MockAmenityAvailability
from concierge.infrastructure.llm.mock_llm import MockLLM
from concierge.widgets.amenity_booking import AmenityBookingWidget
from concierge.widgets.base import WidgetAction

from conftest import ScriptedLLM, fixed_context, run, text_step


def _session(llm=None, unavailable_rate=0.3) -> ChatSession:
    availability = MockAmenityAvailability(unavailable_rate=unavailable_rate, latency_ms=0, rng=random.Random(3))
    handle_chat = HandleChatUseCase(
        llm=llm or MockLLM(),
        registry=build_tool_registry(availability),
        context_provider=fixed_context,
    )
    return ChatSession(handle_chat)


async def _drive(session: ChatSession, events) -> list:
    seen = []
    async for event in events:
        session.render(event)
        seen.append(event)
    return seen


def test_padel_tomorrow_end_to_end():
    session = _session()

    events = run(_drive(session, session.submit("Reservar pádel mañana")))

    assert events[-1].payload["outcome"] == "finished"
    widget = session.renderer.latest_component(AmenityBookingWidget)
    assert widget is not None
    assert widget.data.date == "2024-03-11"
    assert widget.data.amenity_name == "Pista de Pádel"
    assert widget.data.location == "Nivel -1, Zona Deportiva"

    starts = [slot.start_time for slot in widget.data.suggested_slots]
    assert starts == [f"{h:02d}:00" for h in range(8, 22)]
    assert len({slot.id for slot in widget.data.suggested_slots}) == len(starts)

    assistant_text = session.transcript.messages[-1].content
    assert assistant_text == "Aquí tienes las horas disponibles para Pista de Pádel."


def test_confirmation_becomes_a_user_message():
    session = _session(unavailable_rate=0.0)
    run(_drive(session, session.submit("Reservar pádel mañana")))
    widget = session.renderer.latest_component(AmenityBookingWidget)

    widget.select_slot("slot-2024-03-11-18:00")
    action = widget.confirm()

    last = session.transcript.messages[-1]
    code = action.payload["confirmation"]["confirmationCode"]
    assert last.role is MessageRole.user
    assert last.content == f"He confirmado la reserva de Pista de Pádel el 2024-03-11 de 18:00 a 19:00. Código: {code}."

    events = run(_drive(session, session.respond()))
    assert events[-1].payload["outcome"] == "finished"
    assert "confirmada" in session.transcript.messages[-1].content


def test_other_widget_actions_are_ignored():
    session = _session()

    assert session.handle_action(WidgetAction(type="SLOT_HOVERED")) is None
    assert len(session.transcript) == 0


def test_only_one_turn_in_flight():
    session = _session(ScriptedLLM([text_step("uno"), text_step("dos")]))

    async def scenario():
        first = session.submit("Hola")
        await first.__anext__()
        assert session.is_loading

        with pytest.raises(TurnInProgressError):
            await session.submit("¿Sigues ahí?").__anext__()
        with pytest.raises(TurnInProgressError):
            session.handle_action(WidgetAction(type="BOOKING_CONFIRMED"))
        with pytest.raises(TurnInProgressError):
            session.reset()

        rest = [event async for event in first]
        assert rest[-1].kind.value == "finish"
        assert not session.is_loading

        second = [event async for event in session.submit("Otra cosa")]
        assert second[-1].payload["outcome"] == "finished"

    run(scenario())
    assert [m.content for m in session.transcript if m.role is MessageRole.user] == ["Hola", "Otra cosa"]


def test_reset_starts_a_clean_conversation():
    session = _session()
    run(_drive(session, session.submit("Reservar pádel mañana")))

    session.reset()

    assert len(session.transcript) == 0
    assert session.renderer.latest_component(AmenityBookingWidget) is None


def test_confirmation_rejected_mid_turn_can_be_retried():
    session = _session(unavailable_rate=0.0)
    run(_drive(session, session.submit("Reservar pádel mañana")))
    widget = session.renderer.latest_component(AmenityBookingWidget)
    widget.select_slot("slot-2024-03-11-18:00")

    async def scenario():
        turn = session.submit("hola")
        await turn.__anext__()

        with pytest.raises(TurnInProgressError):
            widget.confirm()
        assert widget.phase == "selected"
        assert widget.confirmation is None

        await _drive(session, turn)

    run(scenario())
    action = widget.confirm()

    assert widget.phase == "booked"
    code = action.payload["confirmation"]["confirmationCode"]
    user_messages = [m.content for m in session.transcript if m.role is MessageRole.user]
    assert user_messages == [
        "Reservar pádel mañana",
        "hola",
        f"He confirmado la reserva de Pista de Pádel el 2024-03-11 de 18:00 a 19:00. Código: {code}.",
    ]
