"""
HTTP tests for the chat and diagnostics endpoints.
"""

from __future__ import annotations

import json
import random

import pytest
from fastapi.testclient import TestClient

from concierge.application.exceptions import LLMUpstreamError
from concierge.application.tools.registry import build_tool_registry
from concierge.core.config import settings
from concierge.infrastructure.amenities.mock_availability import MockAmenityAvailability
from concierge.infrastructure.llm.mock_llm import MockLLM
from concierge.main import app
from concierge.wiring import dependencies
from concierge.wiring.dependencies import get_llm, get_tool_registry

from conftest import ScriptedLLM, text_step


@pytest.fixture
def client():
    registry = build_tool_registry(MockAmenityAvailability(unavailable_rate=0.0, latency_ms=0, rng=random.Random(5)))
    app.dependency_overrides[get_tool_registry] = lambda: registry
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _frames(response) -> list[dict]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


def test_missing_api_key_fails_before_any_client_is_built(client, monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("OpenAI client must not be constructed without a key")

    monkeypatch.setattr(settings, "LLM_PROVIDER", "openai")
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(dependencies, "OpenAILLM", _fail)
    dependencies._openai_llm.cache_clear()

    response = client.post("/chat", json={"messages": [{"role": "user", "content": "Hola"}]})

    assert response.status_code == 500
    assert response.json() == {"error": "OPENAI_API_KEY no está configurada"}


@pytest.mark.parametrize(
    "body",
    [
        {"messages": "not-an-array"},
        {},
        {"messages": [{"role": "robot", "content": "beep"}]},
    ],
)
def test_malformed_requests_are_rejected(client, body):
    app.dependency_overrides[get_llm] = lambda: ScriptedLLM([])

    response = client.post("/chat", json=body)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")


def test_non_json_body_is_rejected(client):
    app.dependency_overrides[get_llm] = lambda: ScriptedLLM([])

    response = client.post("/chat", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400


def test_missing_messages_message(client):
    app.dependency_overrides[get_llm] = lambda: ScriptedLLM([])

    response = client.post("/chat", json={"messages": "not-an-array"})

    assert response.json() == {"error": "Invalid request: messages array required"}


def test_upstream_failure_before_first_frame_is_a_500(client):
    app.dependency_overrides[get_llm] = lambda: ScriptedLLM([[LLMUpstreamError("Rate limit exceeded")]])

    response = client.post("/chat", json={"messages": [{"role": "user", "content": "Hola"}]})

    assert response.status_code == 500
    assert response.json() == {"error": "Rate limit exceeded. Please wait a moment and try again."}


def test_chat_streams_frames_with_widgets(client):
    app.dependency_overrides[get_llm] = lambda: MockLLM()

    response = client.post("/chat", json={"messages": [{"role": "user", "content": "Reservar pádel mañana"}]})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    frames = _frames(response)
    types = [f["type"] for f in frames]
    assert types[0] == "step-start"
    assert types[-1] == "finish"
    assert frames[-1]["outcome"] == "finished"

    start = next(f for f in frames if f["type"] == "tool-call-streaming-start")
    assert start["widget"]["status"] == "loading"

    result = next(f for f in frames if f["type"] == "tool-result")
    assert result["widget"]["status"] == "complete"
    assert result["widget"]["props"]["amenityName"] == "Pista de Pádel"
    assert result["result"]["location"] == "Nivel -1, Zona Deportiva"

    text = "".join(f["textDelta"] for f in frames if f["type"] == "text-delta")
    assert text == "Aquí tienes las horas disponibles para Pista de Pádel."


def test_prior_tool_exchanges_are_accepted(client):
    llm = ScriptedLLM([text_step("De nada.")])
    app.dependency_overrides[get_llm] = lambda: llm
    body = {
        "messages": [
            {"role": "user", "content": "Reservar pádel mañana"},
            {
                "role": "assistant",
                "content": "",
                "toolInvocations": [
                    {
                        "toolCallId": "call_1",
                        "toolName": "book_amenity",
                        "state": "result",
                        "args": {"amenityType": "padel", "date": "tomorrow"},
                        "result": {"amenityName": "Pista de Pádel"},
                    }
                ],
            },
            {"role": "user", "content": "Gracias"},
        ]
    }

    response = client.post("/chat", json=body)

    assert response.status_code == 200
    assert _frames(response)[-1]["outcome"] == "finished"
    seen = llm.calls[0]["messages"]
    assert [m.role.value for m in seen] == ["user", "assistant", "user"]
    assert seen[1].tool_invocations[0].result == {"amenityName": "Pista de Pádel"}


def test_diagnostics_endpoints(client):
    assert client.get("/test").json() == {"status": "ok", "message": "API funcionando"}

    echoed = client.post("/test", json={"ping": 1}).json()
    assert echoed["status"] == "ok"
    assert echoed["received"] == {"ping": 1}
    assert echoed["timestamp"]

    assert client.get("/health").json() == {"status": "ok"}
