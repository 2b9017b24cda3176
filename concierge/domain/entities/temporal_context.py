from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TemporalContext:
    current_date: str  # YYYY-MM-DD
    current_time: str  # HH:MM, 24h
    current_datetime: str  # ISO instant in UTC
    day_of_week: str  # localized, e.g. "domingo"
    timezone: str  # IANA id
    locale: str  # e.g. "es-ES"

    def to_payload(self) -> dict[str, str]:
        return {
            "currentDate": self.current_date,
            "currentTime": self.current_time,
            "currentDateTime": self.current_datetime,
            "dayOfWeek": self.day_of_week,
            "timezone": self.timezone,
            "locale": self.locale,
        }
