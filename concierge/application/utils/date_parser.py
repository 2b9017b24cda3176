from __future__ import annotations

from datetime import date, timedelta

from concierge.domain.entities.temporal_context import TemporalContext

RELATIVE_OFFSETS = {
    "today": 0,
    "tomorrow": 1,
    "next_week": 7,
}


def resolve_relative_date(reference: str, context: TemporalContext) -> str:
    """
    Map 'today' / 'tomorrow' / 'next_week' to an ISO date anchored at context.current_date.

    Any other value is assumed to already be an absolute date and is returned as-is.
    """
    offset = RELATIVE_OFFSETS.get(reference)
    if offset is None:
        return reference
    base = date.fromisoformat(context.current_date)
    return (base + timedelta(days=offset)).isoformat()


def get_available_dates(context: TemporalContext, days_ahead: int = 14) -> tuple[str, ...]:
    """The next `days_ahead` calendar dates, starting at today inclusive."""
    base = date.fromisoformat(context.current_date)
    return tuple((base + timedelta(days=i)).isoformat() for i in range(max(0, days_ahead)))


def is_iso_date(value: str) -> bool:
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
