"""
Storage signing and AI agent clients against mocked HTTP transports.
"""
import asyncio
import json

import httpx
import pytest

from core.config import settings
from core.exceptions import AIServiceException
from services.ai_manager import FALLBACK_REPLY, AIConfigurationError, AIManager
from services.chat_service import build_prompt
from services.storage_service import SignedUrlError, StorageClient

STORAGE_URL = "https://abc.supabase.co/storage/v1"


def storage_client(handler, **overrides):
    options = dict(base_url=STORAGE_URL, service_key="service-key", bucket="notes",
                   transport=httpx.MockTransport(handler))
    options.update(overrides)
    return StorageClient(**options)


def test_signed_url_request_and_absolute_result():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"signedURL": "/object/sign/notes/al/maths/limits.pdf?token=abc"})

    url = asyncio.run(storage_client(handler).create_signed_url("al/maths/limits.pdf", 300))

    assert url == f"{STORAGE_URL}/object/sign/notes/al/maths/limits.pdf?token=abc"
    assert seen["url"] == f"{STORAGE_URL}/object/sign/notes/al/maths/limits.pdf"
    assert seen["auth"] == "Bearer service-key"
    assert seen["body"] == {"expiresIn": 300}


@pytest.mark.parametrize("response", [
    httpx.Response(400, json={"error": "Object not found"}),
    httpx.Response(200, json={}),
    httpx.Response(200, text="not json"),
])
def test_signing_failures(response):
    client = storage_client(lambda request: response)
    with pytest.raises(SignedUrlError) as exc_info:
        asyncio.run(client.create_signed_url("missing.pdf", 300))
    assert (exc_info.value.status_code, exc_info.value.code) == (500, "SIGNED_URL_FAILED")


def test_unconfigured_storage_fails_without_a_request():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(SignedUrlError):
        asyncio.run(storage_client(handler, service_key=None).create_signed_url("a.pdf", 300))


@pytest.fixture
def agent_settings(monkeypatch):
    monkeypatch.setattr(settings, "ai_agent_url", "https://agent.test")
    monkeypatch.setattr(settings, "ai_agent_access_key", "agent-key")


def agent(handler):
    return AIManager(provider="agent", transport=httpx.MockTransport(handler))


def test_agent_completion(agent_settings):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "A limit is..."}}]})

    messages = [{"role": "user", "content": "What is a limit?"}]
    reply = asyncio.run(agent(handler).complete(messages))

    assert reply == "A limit is..."
    assert seen["url"] == "https://agent.test/api/v1/chat/completions"
    assert seen["auth"] == "Bearer agent-key"
    assert seen["body"] == {"messages": messages, "stream": False}


def test_agent_empty_choice_falls_back(agent_settings):
    reply = asyncio.run(agent(lambda request: httpx.Response(200, json={"choices": []})).complete([]))
    assert reply == FALLBACK_REPLY


def test_agent_error_status_is_service_unavailable(agent_settings):
    with pytest.raises(AIServiceException) as exc_info:
        asyncio.run(agent(lambda request: httpx.Response(503, text="overloaded")).complete([]))
    assert (exc_info.value.status_code, exc_info.value.code) == (502, "SERVICE_UNAVAILABLE")


def test_agent_transport_error_is_service_unavailable(agent_settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AIServiceException) as exc_info:
        asyncio.run(agent(handler).complete([]))
    assert exc_info.value.code == "SERVICE_UNAVAILABLE"


def test_missing_agent_configuration(monkeypatch):
    monkeypatch.setattr(settings, "ai_agent_access_key", None)
    with pytest.raises(AIConfigurationError) as exc_info:
        asyncio.run(AIManager(provider="agent").complete([]))
    assert (exc_info.value.status_code, exc_info.value.code) == (500, "AI_NOT_CONFIGURED")


def test_missing_gemini_key(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", None)
    with pytest.raises(AIConfigurationError):
        asyncio.run(AIManager(provider="gemini").complete([{"role": "user", "content": "hi"}]))


def test_prompt_formatting_uses_grouped_thousands():
    prompt = build_prompt([], "Explain vectors", "lifetime", 99950)
    assert prompt == [{
        "role": "user",
        "content": "[Context: Platinum member, 99,950 credits remaining this month]\n\nExplain vectors",
    }]
