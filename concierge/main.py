import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from concierge.api.chat import router as chat_router
from concierge.api.diagnostics import router as diagnostics_router
from concierge.application.exceptions import ConfigurationError, InvalidTemporalSettings
from concierge.core.config import settings
from concierge.wiring.dependencies import get_tool_registry

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in (
            "tool_call_id",
            "tool_name",
            "step",
            "outcome",
            "message_count",
            "current_date",
            "amenity",
            "date",
            "slot_count",
            "reason",
            "error",
            "prompt_tokens",
            "completion_tokens",
        ):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry = get_tool_registry()
    logger.info("Tool registry ready", extra={"tool_name": ",".join(t.name.value for t in registry)})
    yield


app = FastAPI(title="Meridian Concierge", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(InvalidTemporalSettings)
async def temporal_settings_error_handler(request: Request, exc: InvalidTemporalSettings) -> JSONResponse:
    logger.error("Temporal settings rejected", extra={"error": str(exc)})
    return JSONResponse(status_code=500, content={"error": str(exc)})


app.include_router(chat_router, tags=["chat"])
app.include_router(diagnostics_router, tags=["diagnostics"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("concierge.main:app", host="0.0.0.0", port=8000, reload=settings.ENV.lower() in {"dev", "local"})
