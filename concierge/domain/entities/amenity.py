from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AmenityType(str, Enum):
    padel = "padel"
    tennis = "tennis"
    pool = "pool"
    gym = "gym"
    spa = "spa"
    coworking = "coworking"
    cinema = "cinema"
    rooftop = "rooftop"


@dataclass(frozen=True)
class AmenityProfile:
    amenity_type: AmenityType
    name: str
    location: str
    max_duration: int  # minutes
    rules: tuple[str, ...]
    opening_hour: int = 8
    closing_hour: int = 22  # exclusive; 24 means midnight
    slot_minutes: int = 60
    price: float | None = None


@dataclass(frozen=True)
class TimeSlot:
    id: str
    start_time: str  # HH:MM
    end_time: str  # HH:MM, exclusive
    available: bool
    price: float | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "available": self.available,
        }
        if self.price is not None:
            payload["price"] = self.price
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TimeSlot":
        return cls(
            id=str(payload["id"]),
            start_time=str(payload["startTime"]),
            end_time=str(payload["endTime"]),
            available=bool(payload["available"]),
            price=payload.get("price"),
        )


@dataclass(frozen=True)
class AmenityBookingData:
    amenity_type: AmenityType
    amenity_name: str
    date: str  # resolved ISO date
    suggested_slots: tuple[TimeSlot, ...]
    location: str
    max_duration: int
    rules: tuple[str, ...]

    def to_payload(self) -> dict[str, Any]:
        return {
            "amenityType": self.amenity_type.value,
            "amenityName": self.amenity_name,
            "date": self.date,
            "suggestedSlots": [slot.to_payload() for slot in self.suggested_slots],
            "location": self.location,
            "maxDuration": self.max_duration,
            "rules": list(self.rules),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AmenityBookingData":
        return cls(
            amenity_type=AmenityType(payload["amenityType"]),
            amenity_name=str(payload["amenityName"]),
            date=str(payload["date"]),
            suggested_slots=tuple(TimeSlot.from_payload(s) for s in payload.get("suggestedSlots") or []),
            location=str(payload.get("location") or ""),
            max_duration=int(payload.get("maxDuration") or 0),
            rules=tuple(str(r) for r in payload.get("rules") or []),
        )


@dataclass(frozen=True)
class BookingConfirmation:
    booking_id: str
    amenity_name: str
    date: str
    time_slot: TimeSlot
    confirmation_code: str  # MRD-XXXXXX

    def to_payload(self) -> dict[str, Any]:
        return {
            "bookingId": self.booking_id,
            "amenityName": self.amenity_name,
            "date": self.date,
            "timeSlot": self.time_slot.to_payload(),
            "confirmationCode": self.confirmation_code,
        }
