from __future__ import annotations

import json
import re
import uuid
from typing import Any, AsyncIterator, Sequence

from concierge.application.dto.stream_events import (
    ModelEvent,
    StepFinish,
    TextDelta,
    ToolCallArgsDelta,
    ToolCallReady,
    ToolCallStart,
)
from concierge.application.ports.llm import LLMPort
from concierge.domain.entities.amenity import AmenityType
from concierge.domain.entities.tool_result import Usage
from concierge.domain.entities.transcript import ConversationMessage, MessageRole, ToolInvocationState

AMENITY_KEYWORDS = {
    "pádel": AmenityType.padel,
    "padel": AmenityType.padel,
    "tenis": AmenityType.tennis,
    "tennis": AmenityType.tennis,
    "piscina": AmenityType.pool,
    "pool": AmenityType.pool,
    "gimnasio": AmenityType.gym,
    "gym": AmenityType.gym,
    "spa": AmenityType.spa,
    "coworking": AmenityType.coworking,
    "cine": AmenityType.cinema,
    "cinema": AmenityType.cinema,
    "rooftop": AmenityType.rooftop,
    "terraza": AmenityType.rooftop,
}

HELP_TEXT = (
    "Puedo ayudarte a reservar pádel, tenis, piscina, gimnasio, spa, coworking, "
    "cine privado o el rooftop. ¿Qué te gustaría reservar?"
)
CONFIRMED_TEXT = "¡Perfecto! Tu reserva está confirmada. Te esperamos."

_ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_TIME_RE = re.compile(r"\b([01]?\d|2[0-3])[:h]([0-5]\d)\b")


def detect_amenity(text: str) -> AmenityType | None:
    words = re.findall(r"[\wáéíóúñ]+", text.lower())
    for word in words:
        if word in AMENITY_KEYWORDS:
            return AMENITY_KEYWORDS[word]
    return None


def detect_date_reference(text: str) -> str:
    normalized = text.lower()
    match = _ISO_DATE_RE.search(normalized)
    if match:
        return match.group(1)
    if any(k in normalized for k in ("semana que viene", "próxima semana", "proxima semana", "next week")):
        return "next_week"
    if "mañana" in normalized or "manana" in normalized or "tomorrow" in normalized:
        return "tomorrow"
    return "today"


def detect_preferred_time(text: str) -> str | None:
    match = _TIME_RE.search(text.lower())
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


class MockLLM(LLMPort):
    """Keyword-driven stand-in for local runs without a provider key."""

    async def stream_step(
        self,
        system_prompt: str,
        messages: Sequence[ConversationMessage],
        tools: Sequence[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[ModelEvent]:
        usage = Usage(prompt_tokens=len(system_prompt) // 4, completion_tokens=0)
        last = messages[-1] if messages else None

        if last is not None and last.role is MessageRole.assistant and last.tool_invocations:
            resolved = [i for i in last.tool_invocations if i.state is ToolInvocationState.result]
            if any(i.is_error for i in resolved):
                text = "No he podido consultar la disponibilidad. ¿Puedes indicarme otra fecha u hora?"
            else:
                names = [str((i.result or {}).get("amenityName", i.tool_name)) for i in resolved]
                text = f"Aquí tienes las horas disponibles para {', '.join(names)}."
            for event in self._stream_text(text):
                yield event
            yield StepFinish(finish_reason="stop", usage=usage)
            return

        user_text = last.content if last is not None and last.role is MessageRole.user else ""
        if "he confirmado" in user_text.lower():
            for event in self._stream_text(CONFIRMED_TEXT):
                yield event
            yield StepFinish(finish_reason="stop", usage=usage)
            return

        amenity = detect_amenity(user_text)
        offers_booking = any(t.get("function", {}).get("name") == "book_amenity" for t in tools)

        if amenity is None or not offers_booking:
            for event in self._stream_text(HELP_TEXT):
                yield event
            yield StepFinish(finish_reason="stop", usage=usage)
            return

        args: dict[str, Any] = {"amenityType": amenity.value, "date": detect_date_reference(user_text)}
        preferred = detect_preferred_time(user_text)
        if preferred:
            args["preferredTime"] = preferred

        call_id = f"call_{uuid.uuid4().hex[:12]}"
        raw = json.dumps(args)
        half = len(raw) // 2
        yield ToolCallStart(tool_call_id=call_id, tool_name="book_amenity")
        yield ToolCallArgsDelta(tool_call_id=call_id, delta=raw[:half])
        yield ToolCallArgsDelta(tool_call_id=call_id, delta=raw[half:])
        yield ToolCallReady(tool_call_id=call_id, tool_name="book_amenity", arguments=raw)
        yield StepFinish(finish_reason="tool_calls", usage=usage)

    def _stream_text(self, text: str) -> list[TextDelta]:
        words = text.split(" ")
        return [TextDelta(word if i == 0 else " " + word) for i, word in enumerate(words)]
