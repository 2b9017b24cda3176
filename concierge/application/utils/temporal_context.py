"""Server-side source of truth for "now".

A fresh context is built for every request so the model never reasons from a
stale or client-supplied clock.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from concierge.application.exceptions import InvalidTemporalSettings
from concierge.core.config import settings
from concierge.domain.entities.temporal_context import TemporalContext

_LOCALE_RE = re.compile(r"^(?P<lang>[a-z]{2,3})(?:[-_](?P<region>[A-Za-z]{2}|\d{3}))?$")

WEEKDAY_NAMES = {
    "es": ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"),
    "ca": ("dilluns", "dimarts", "dimecres", "dijous", "divendres", "dissabte", "diumenge"),
    "en": ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"),
    "fr": ("lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"),
    "de": ("Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag", "Sonntag"),
    "it": ("lunedì", "martedì", "mercoledì", "giovedì", "venerdì", "sabato", "domenica"),
    "pt": ("segunda-feira", "terça-feira", "quarta-feira", "quinta-feira", "sexta-feira", "sábado", "domingo"),
}

MONTH_NAMES = {
    "es": ("enero", "febrero", "marzo", "abril", "mayo", "junio", "julio",
           "agosto", "septiembre", "octubre", "noviembre", "diciembre"),
    "en": ("January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December"),
}


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTemporalSettings(f"Unknown timezone: {name!r}") from e


def _language(locale: str) -> str:
    match = _LOCALE_RE.match(locale or "")
    if not match:
        raise InvalidTemporalSettings(f"Malformed locale: {locale!r}")
    lang = match.group("lang")
    if lang not in WEEKDAY_NAMES:
        raise InvalidTemporalSettings(f"Unsupported locale: {locale!r}")
    return lang


def get_temporal_context(
    timezone: str | None = None,
    locale: str | None = None,
    now: datetime | None = None,
) -> TemporalContext:
    """
    Snapshot the wall clock in the building's timezone.

    `now` must be timezone-aware when given; it exists for tests and is never
    fed from request data.
    """
    tz_name = timezone or settings.BUILDING_TIMEZONE
    locale_tag = locale or settings.BUILDING_LOCALE
    tz = _zone(tz_name)
    lang = _language(locale_tag)

    instant = now if now is not None else datetime.now(dt_timezone.utc)
    if instant.tzinfo is None:
        raise InvalidTemporalSettings("Reference instant must be timezone-aware")
    local = instant.astimezone(tz)
    utc = instant.astimezone(dt_timezone.utc)

    return TemporalContext(
        current_date=local.date().isoformat(),
        current_time=local.strftime("%H:%M"),
        current_datetime=utc.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        day_of_week=WEEKDAY_NAMES[lang][local.weekday()],
        timezone=tz_name,
        locale=locale_tag,
    )


def format_display_date(iso_date: str, locale: str | None = None) -> str:
    """Long human date for widgets, e.g. 'lunes, 11 de marzo de 2024'. Falls back to the raw string."""
    try:
        value = date.fromisoformat(iso_date)
    except (TypeError, ValueError):
        return iso_date
    lang = _language(locale or settings.BUILDING_LOCALE)
    weekday = WEEKDAY_NAMES[lang][value.weekday()]
    if lang == "es":
        return f"{weekday}, {value.day} de {MONTH_NAMES['es'][value.month - 1]} de {value.year}"
    if lang == "en":
        return f"{weekday}, {MONTH_NAMES['en'][value.month - 1]} {value.day}, {value.year}"
    return f"{weekday}, {value.isoformat()}"
