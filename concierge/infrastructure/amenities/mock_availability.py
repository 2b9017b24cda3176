from __future__ import annotations

import asyncio
import logging
import random

from concierge.application.ports.amenity_availability import AmenityAvailabilityPort
from concierge.domain.entities.amenity import AmenityProfile, TimeSlot

PREFERENCE_WINDOW_MINUTES = 120


def _hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _preferred_minutes(preferred_time: str | None) -> int | None:
    if not preferred_time:
        return None
    hours, _, _ = preferred_time.partition(":")
    try:
        return int(hours) * 60
    except ValueError:
        return None


class MockAmenityAvailability(AmenityAvailabilityPort):
    """
    Stand-in for a real inventory backend.

    Each slot is randomly unavailable with `unavailable_rate`, except slots
    starting within two hours of the preferred hour, which are always free.
    """

    def __init__(
        self,
        unavailable_rate: float = 0.3,
        latency_ms: int = 300,
        rng: random.Random | None = None,
    ) -> None:
        self._unavailable_rate = unavailable_rate
        self._latency_ms = latency_ms
        self._rng = rng or random.Random()
        self._logger = logging.getLogger(__name__)

    async def find_slots(
        self,
        amenity: AmenityProfile,
        date: str,
        preferred_time: str | None = None,
    ) -> list[TimeSlot]:
        if self._latency_ms > 0:
            await asyncio.sleep(self._latency_ms / 1000)

        preferred = _preferred_minutes(preferred_time)
        opening = amenity.opening_hour * 60
        closing = amenity.closing_hour * 60
        step = amenity.slot_minutes

        slots: list[TimeSlot] = []
        current = opening
        while current + step <= closing:
            near_preferred = preferred is not None and abs(current - preferred) <= PREFERENCE_WINDOW_MINUTES
            available = near_preferred or self._rng.random() >= self._unavailable_rate
            slots.append(
                TimeSlot(
                    id=f"slot-{date}-{_hhmm(current)}",
                    start_time=_hhmm(current),
                    end_time=_hhmm(current + step),
                    available=available,
                    price=amenity.price,
                )
            )
            current += step

        self._logger.debug(
            "Mock availability generated",
            extra={"amenity": amenity.amenity_type.value, "date": date, "slot_count": len(slots)},
        )
        return slots
