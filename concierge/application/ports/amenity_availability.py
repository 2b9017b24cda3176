from __future__ import annotations

from abc import ABC, abstractmethod

from concierge.domain.entities.amenity import AmenityProfile, TimeSlot


class AmenityAvailabilityPort(ABC):
    @abstractmethod
    async def find_slots(
        self,
        amenity: AmenityProfile,
        date: str,
        preferred_time: str | None = None,
    ) -> list[TimeSlot]:
        """
        Return the amenity's slots for `date`, sorted by start time, unique by id.

        Slots starting within two hours of `preferred_time` must be reported available.
        """
        raise NotImplementedError
