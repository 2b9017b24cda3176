#!/usr/bin/env python3
"""
Interactive local chat harness (no HTTP).

Usage:
  LLM_PROVIDER=mock python3 scripts/chat_local.py

What it does:
- Keeps one ChatSession (transcript + widgets) for the run
- Streams each turn through the same HandleChatUseCase the API uses
- Prints streamed text and a text render of every widget
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from concierge.application.dto.stream_events import TurnEventKind
from concierge.application.exceptions import ConfigurationError
from concierge.application.use_cases.chat_session import ChatSession
from concierge.widgets.amenity_booking import AmenityBookingWidget

SUGGESTIONS = (
    "Reservar pádel mañana",
    "¿Qué amenities hay?",
    "Piscina este fin de semana",
    "Quiero ir al spa",
)


def _print_header() -> None:
    print("\nBienvenido a Meridian")
    print("-" * 60)
    print("Dime qué necesitas y haré que suceda.")
    print("Sugerencias: " + " | ".join(SUGGESTIONS))
    print("Commands: /select <slot-id>, /confirm, /new, /quit, /help")
    print("-" * 60)


async def _run_turn(events, session: ChatSession) -> None:
    text_open = False
    async for event in events:
        if event.kind is TurnEventKind.text_delta:
            if not text_open:
                print("\n(assistant) ", end="")
                text_open = True
            print(event.payload["textDelta"], end="", flush=True)
            continue
        if text_open:
            print()
            text_open = False

        if event.kind is TurnEventKind.error:
            print(f"\nERROR: {event.payload.get('message')}")
        elif event.kind in (TurnEventKind.tool_call_streaming_start, TurnEventKind.tool_result):
            view = session.render(event)
            if view is not None:
                print(f"\n[{view.widget} · {view.status.value}]")
                print(view.text)
        elif event.kind is TurnEventKind.finish:
            usage = event.payload.get("usage") or {}
            print(f"\n-- {event.payload.get('outcome')} · steps={event.payload.get('steps')} · tokens={usage.get('totalTokens')}")
    if text_open:
        print()


async def main() -> None:
    from concierge.wiring.dependencies import get_chat_session

    try:
        session = get_chat_session()
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        print("Set OPENAI_API_KEY or run with LLM_PROVIDER=mock.")
        return
    _print_header()

    while True:
        try:
            user_text = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            return

        if not user_text:
            continue

        cmd, _, arg = user_text.partition(" ")
        cmd = cmd.lower()
        if cmd in ("/quit", "/exit"):
            print("Bye!")
            return
        if cmd == "/help":
            print("Commands:")
            print("  /select <slot-id> -> pick a slot in the latest booking widget")
            print("  /confirm -> confirm the selected slot")
            print("  /new -> start a new conversation")
            print("  /quit -> exit")
            continue
        if cmd == "/new":
            session.reset()
            print("New conversation.")
            _print_header()
            continue
        if cmd in ("/select", "/confirm"):
            widget = session.renderer.latest_component(AmenityBookingWidget)
            if widget is None:
                print("No booking widget yet.")
                continue
            try:
                if cmd == "/select":
                    slot = widget.select_slot(arg.strip())
                    print(f"Seleccionado: {slot.start_time} - {slot.end_time}")
                    continue
                widget.confirm()
            except ValueError as e:
                print(f"ERROR: {e}")
                continue
            print(widget.render_text())
            await _run_turn(session.respond(), session)
            continue

        await _run_turn(session.submit(user_text), session)


if __name__ == "__main__":
    asyncio.run(main())
