from functools import lru_cache
import logging

from fastapi import Depends

from concierge.core.config import settings
from concierge.application.exceptions import ConfigurationError
from concierge.application.ports.llm import LLMPort
from concierge.application.tools.registry import ToolRegistry, build_tool_registry
from concierge.application.use_cases.chat_session import ChatSession
from concierge.application.use_cases.handle_chat import HandleChatUseCase
from concierge.infrastructure.amenities.mock_availability import MockAmenityAvailability
from concierge.infrastructure.llm.mock_llm import MockLLM
from concierge.infrastructure.llm.openai_llm import OpenAILLM


logger = logging.getLogger(__name__)


@lru_cache
def get_tool_registry() -> ToolRegistry:
    availability = MockAmenityAvailability(
        unavailable_rate=settings.AMENITY_UNAVAILABLE_RATE,
        latency_ms=settings.AMENITY_LATENCY_MS,
    )
    return build_tool_registry(availability, booking_window_days=settings.BOOKING_WINDOW_DAYS)


@lru_cache
def _openai_llm(api_key: str, model: str, timeout: float) -> LLMPort:
    return OpenAILLM(api_key=api_key, model=model, timeout=timeout)


def get_llm() -> LLMPort:
    provider = settings.LLM_PROVIDER.lower()
    if provider == "mock":
        return MockLLM()
    if provider != "openai":
        raise ConfigurationError(f"Unsupported LLM_PROVIDER: {settings.LLM_PROVIDER}")

    api_key = (settings.OPENAI_API_KEY or "").strip()
    if not api_key:
        logger.error("OpenAI API key missing", extra={"reason": "configuration"})
        raise ConfigurationError("OPENAI_API_KEY no está configurada")
    return _openai_llm(api_key, settings.OPENAI_MODEL_CHAT, settings.CHAT_TIMEOUT_SECONDS)


def get_handle_chat_use_case(
    llm: LLMPort = Depends(get_llm),
    registry: ToolRegistry = Depends(get_tool_registry),
) -> HandleChatUseCase:
    return HandleChatUseCase(
        llm=llm,
        registry=registry,
        max_steps=settings.CHAT_MAX_STEPS,
        temperature=settings.OPENAI_TEMPERATURE_CHAT,
        timeout_seconds=settings.CHAT_TIMEOUT_SECONDS,
        timezone=settings.BUILDING_TIMEZONE,
        locale=settings.BUILDING_LOCALE,
        resident_name=settings.RESIDENT_NAME,
        resident_unit=settings.RESIDENT_UNIT,
        building_name=settings.BUILDING_NAME,
    )


def get_chat_session() -> ChatSession:
    return ChatSession(get_handle_chat_use_case(llm=get_llm(), registry=get_tool_registry()))
