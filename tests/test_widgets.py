"""
Tests for widget resolution and the amenity booking widget.
"""

from __future__ import annotations

import re

import pytest

from concierge.domain.entities.amenity import AmenityBookingData, AmenityType, TimeSlot
from concierge.domain.entities.transcript import ToolInvocation
from concierge.widgets.amenity_booking import BOOKING_CONFIRMED, AmenityBookingWidget
from concierge.widgets.base import WidgetStatus
from concierge.widgets.renderer import WidgetRenderer


def _booking_payload() -> dict:
    return AmenityBookingData(
        amenity_type=AmenityType.padel,
        amenity_name="Pista de Pádel",
        date="2024-03-11",
        suggested_slots=(
            TimeSlot("slot-2024-03-11-08:00", "08:00", "09:00", True),
            TimeSlot("slot-2024-03-11-09:00", "09:00", "10:00", False),
            TimeSlot("slot-2024-03-11-10:00", "10:00", "11:00", True),
        ),
        location="Nivel -1, Zona Deportiva",
        max_duration=90,
        rules=("Máximo 4 jugadores por reserva",),
    ).to_payload()


def _invocation(name: str = "book_amenity") -> ToolInvocation:
    invocation = ToolInvocation(tool_call_id="call_1", tool_name=name)
    invocation.mark_called({"amenityType": "padel", "date": "tomorrow"})
    return invocation


def test_loading_renders_skeleton_then_component(registry):
    renderer = WidgetRenderer(registry)
    invocation = _invocation()

    loading = renderer.render(invocation)
    assert loading.status is WidgetStatus.loading
    assert loading.widget == "amenity_booking_skeleton"
    assert loading.text == "Buscando horarios disponibles..."

    invocation.resolve(_booking_payload())
    done = renderer.render(invocation)
    assert done.status is WidgetStatus.complete
    assert done.widget == "amenity_booking"
    assert done.props["availableCount"] == 2
    assert done.props["dateLabel"] == "lunes, 11 de marzo de 2024"
    assert renderer.render(invocation).status is WidgetStatus.complete


def test_unknown_tool_shows_spinner_then_unavailable(registry):
    renderer = WidgetRenderer(registry)
    invocation = _invocation("send_invoice")

    assert renderer.render(invocation).widget == "spinner"

    invocation.resolve({"error": {"type": "unknown_tool"}}, is_error=True)
    view = renderer.render(invocation)
    assert view.status is WidgetStatus.unavailable
    assert view.text == "Widget no disponible: send_invoice"


def test_error_result_renders_inline_error(registry):
    renderer = WidgetRenderer(registry)
    invocation = _invocation()
    invocation.resolve({"error": {"type": "tool_execution_failed", "userMessage": "Inténtalo de nuevo."}}, is_error=True)

    view = renderer.render(invocation)

    assert view.status is WidgetStatus.error
    assert view.props == {"message": "Inténtalo de nuevo."}


def test_malformed_result_renders_error_instead_of_crashing(registry):
    renderer = WidgetRenderer(registry)
    invocation = _invocation()
    invocation.resolve({"amenityType": "padel"})

    assert renderer.render(invocation).status is WidgetStatus.error


def test_select_and_confirm_emits_booking_action():
    actions = []
    widget = AmenityBookingWidget(_booking_payload(), on_action=actions.append, locale="es-ES")

    assert widget.phase == "selecting"
    with pytest.raises(ValueError):
        widget.confirm()
    with pytest.raises(ValueError):
        widget.select_slot("slot-2024-03-11-09:00")
    with pytest.raises(ValueError):
        widget.select_slot("slot-unknown")

    widget.select_slot("slot-2024-03-11-10:00")
    assert widget.phase == "selected"
    action = widget.confirm()

    assert widget.phase == "booked"
    assert actions == [action]
    assert action.type == BOOKING_CONFIRMED
    assert action.payload["slot"]["startTime"] == "10:00"
    assert re.fullmatch(r"MRD-[A-Z0-9]{6}", action.payload["confirmation"]["confirmationCode"])
    assert "Reserva Confirmada" in widget.render_text()
    with pytest.raises(ValueError):
        widget.select_slot("slot-2024-03-11-08:00")


def test_widget_never_writes_without_a_host():
    widget = AmenityBookingWidget(_booking_payload())
    widget.select_slot("slot-2024-03-11-08:00")

    action = widget.confirm()

    assert action.payload["date"] == "2024-03-11"
