from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/test")
def test_get() -> dict[str, str]:
    return {"status": "ok", "message": "API funcionando"}


@router.post("/test")
async def test_post(request: Request):
    body = await request.body()
    try:
        payload = json.loads(body.decode("utf-8")) if body else None
    except ValueError:
        logger.info("Diagnostics body is not JSON", extra={"reason": "invalid_json"})
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    return {
        "status": "ok",
        "received": payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
