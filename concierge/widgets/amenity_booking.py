from __future__ import annotations

import secrets
import string
import uuid
from typing import Any, Mapping

from concierge.application.utils.temporal_context import format_display_date
from concierge.domain.entities.amenity import AmenityBookingData, BookingConfirmation, TimeSlot
from concierge.widgets.base import ActionHandler, WidgetAction, WidgetComponent, WidgetSkeleton

BOOKING_CONFIRMED = "BOOKING_CONFIRMED"

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _confirmation_code() -> str:
    return "MRD-" + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))


class AmenityBookingWidget(WidgetComponent):
    """Slot picker for book_amenity results: select an available slot, then confirm."""

    widget_name = "amenity_booking"

    def __init__(
        self,
        data: Mapping[str, Any],
        on_action: ActionHandler | None = None,
        locale: str | None = None,
    ) -> None:
        super().__init__(data, on_action)
        self.data = AmenityBookingData.from_payload(dict(data))
        self._locale = locale
        self._selected: TimeSlot | None = None
        self._confirmation: BookingConfirmation | None = None

    @property
    def available_slots(self) -> list[TimeSlot]:
        return [slot for slot in self.data.suggested_slots if slot.available]

    @property
    def selected_slot(self) -> TimeSlot | None:
        return self._selected

    @property
    def confirmation(self) -> BookingConfirmation | None:
        return self._confirmation

    @property
    def phase(self) -> str:
        if self._confirmation is not None:
            return "booked"
        if self._selected is not None:
            return "selected"
        return "selecting"

    def select_slot(self, slot_id: str) -> TimeSlot:
        if self._confirmation is not None:
            raise ValueError("Booking already confirmed.")
        for slot in self.data.suggested_slots:
            if slot.id == slot_id:
                if not slot.available:
                    raise ValueError(f"Slot {slot_id} is not available.")
                self._selected = slot
                return slot
        raise ValueError(f"Unknown slot: {slot_id}")

    def confirm(self) -> WidgetAction:
        if self._selected is None:
            raise ValueError("Select a slot before confirming.")
        if self._confirmation is not None:
            raise ValueError("Booking already confirmed.")

        confirmation = BookingConfirmation(
            booking_id=str(uuid.uuid4()),
            amenity_name=self.data.amenity_name,
            date=self.data.date,
            time_slot=self._selected,
            confirmation_code=_confirmation_code(),
        )
        action = WidgetAction(
            type=BOOKING_CONFIRMED,
            payload={
                "amenityType": self.data.amenity_type.value,
                "date": self.data.date,
                "slot": self._selected.to_payload(),
                "confirmation": confirmation.to_payload(),
            },
        )
        # The host may reject the action; the widget stays selectable until it accepts.
        self.emit(action)
        self._confirmation = confirmation
        return action

    def props(self) -> dict[str, Any]:
        selected_id = self._selected.id if self._selected else None
        return {
            **self.data.to_payload(),
            "dateLabel": format_display_date(self.data.date, self._locale),
            "availableCount": len(self.available_slots),
            "slots": [
                {**slot.to_payload(), "selected": slot.id == selected_id}
                for slot in self.data.suggested_slots
            ],
            "selectedSlotId": selected_id,
            "phase": self.phase,
            "confirmation": self._confirmation.to_payload() if self._confirmation else None,
        }

    def render_text(self) -> str:
        data = self.data
        date_label = format_display_date(data.date, self._locale)
        if self._confirmation is not None:
            slot = self._confirmation.time_slot
            return "\n".join(
                [
                    "Reserva Confirmada",
                    f"{data.amenity_name} · {date_label}",
                    f"{slot.start_time} - {slot.end_time}",
                    f"Código de confirmación: {self._confirmation.confirmation_code}",
                ]
            )

        lines = [
            f"{data.amenity_name} · {data.location}",
            date_label,
            f"{len(self.available_slots)} horas disponibles",
        ]
        for slot in data.suggested_slots:
            marker = "x" if self._selected and slot.id == self._selected.id else ("o" if slot.available else "-")
            price = f" {slot.price:g}€" if slot.price is not None else ""
            lines.append(f"  [{marker}] {slot.start_time}-{slot.end_time}{price}  ({slot.id})")
        lines.extend(f"  · {rule}" for rule in data.rules)
        if self._selected is not None:
            lines.append(f"Seleccionado: {self._selected.start_time} - {self._selected.end_time}")
        else:
            lines.append("Selecciona una hora para continuar")
        return "\n".join(lines)


class AmenityBookingSkeleton(WidgetSkeleton):
    widget_name = "amenity_booking_skeleton"

    def props(self) -> dict[str, Any]:
        return {"placeholderSlots": 12, "placeholderRules": 3}

    def render_text(self) -> str:
        return "Buscando horarios disponibles..."
