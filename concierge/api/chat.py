from __future__ import annotations

import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from concierge.api.schemas import ChatRequestSchema
from concierge.application.dto.stream_events import TOOL_EVENT_KINDS, TurnEvent, TurnEventKind
from concierge.application.use_cases.handle_chat import HandleChatUseCase
from concierge.widgets.renderer import WidgetRenderer
from concierge.wiring.dependencies import get_handle_chat_use_case


router = APIRouter()
logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _encode(event: TurnEvent, renderer: WidgetRenderer) -> bytes:
    frame: dict[str, Any] = event.to_frame()
    if event.kind in TOOL_EVENT_KINDS and event.invocation is not None:
        frame["widget"] = renderer.render(event.invocation).to_payload()
    return (json.dumps(frame, ensure_ascii=False, default=str) + "\n").encode("utf-8")


@router.post("/chat")
async def chat(
    request: Request,
    uc: HandleChatUseCase = Depends(get_handle_chat_use_case),
):
    body = await request.body()
    try:
        payload = json.loads(body.decode("utf-8")) if body else None
    except ValueError:
        logger.info("Chat request rejected", extra={"reason": "invalid_json"})
        return _bad_request("Invalid request: body must be JSON")

    if not isinstance(payload, dict) or not isinstance(payload.get("messages"), list):
        logger.info("Chat request rejected", extra={"reason": "messages_missing"})
        return _bad_request("Invalid request: messages array required")

    try:
        transcript = ChatRequestSchema.model_validate(payload).to_transcript()
    except ValidationError as e:
        logger.info("Chat request rejected", extra={"reason": "invalid_messages", "error": str(e)})
        return _bad_request(f"Invalid request: {e.errors()[0].get('msg', 'malformed message')}")
    except ValueError as e:
        logger.info("Chat request rejected", extra={"reason": "invalid_messages", "error": str(e)})
        return _bad_request(f"Invalid request: {e}")

    logger.info("Chat request received", extra={"message_count": len(transcript)})

    events = uc.stream(transcript)
    try:
        first = await events.__anext__()
    except StopAsyncIteration:
        await events.aclose()
        return JSONResponse(status_code=500, content={"error": "Empty response from model"})

    if first.kind is TurnEventKind.error:
        await events.aclose()
        return JSONResponse(status_code=500, content={"error": first.payload.get("message", "")})

    renderer = WidgetRenderer(uc.registry)

    async def frames() -> AsyncIterator[bytes]:
        async with aclosing(events) as rest:
            yield _encode(first, renderer)
            async for event in rest:
                yield _encode(event, renderer)

    return StreamingResponse(frames(), media_type=NDJSON_MEDIA_TYPE)
