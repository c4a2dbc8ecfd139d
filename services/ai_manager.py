"""
Central AI Manager service for chat completions.

Two backends are supported, picked by ``settings.ai_provider``:

- ``agent``: an OpenAI-compatible ``/chat/completions`` endpoint (hosted
  agent with its own system prompt), called over httpx.
- ``gemini``: Google Gemini through ``google-genai``.

Each request is a single attempt. Callers have already been charged by the
time a completion is requested, so a failure surfaces immediately instead of
being retried behind the user's back.
"""
import asyncio
from typing import Dict, List, Optional

from google import genai
from google.genai import types
import httpx
import structlog

from core.config import settings
from core.exceptions import AIServiceException

logger = structlog.get_logger("ai_manager")

FALLBACK_REPLY = "I apologize, but I couldn't generate a response. Please try again."

ChatMessages = List[Dict[str, str]]


class AIConfigurationError(AIServiceException):
    def __init__(self, provider: str):
        super().__init__(
            detail="AI service not configured",
            code="AI_NOT_CONFIGURED",
            status_code=500,
            provider=provider,
        )


class AIManager:
    """Sends a prepared message list to the configured AI backend."""

    def __init__(
        self,
        provider: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = (provider or settings.ai_provider).lower()
        self.timeout_seconds = timeout_seconds or settings.ai_request_timeout_seconds
        self.transport = transport
        self._gemini_client = None

    async def complete(self, messages: ChatMessages) -> str:
        """
        Return the assistant reply for ``messages``.

        Raises:
            AIConfigurationError: backend credentials or endpoint are missing.
            AIServiceException: backend unreachable or returned an error.
        """
        if self.provider == "gemini":
            return await self._complete_with_gemini(messages)
        if self.provider == "agent":
            return await self._complete_with_agent(messages)

        logger.error("Unknown AI provider configured", provider=self.provider)
        raise AIConfigurationError(self.provider)

    async def _complete_with_agent(self, messages: ChatMessages) -> str:
        if not settings.ai_agent_url or not settings.ai_agent_access_key:
            logger.error("AI agent not configured")
            raise AIConfigurationError("agent")

        url = f"{settings.ai_agent_url.rstrip('/')}/api/v1/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.ai_agent_access_key}",
        }

        logger.info("Sending chat completion request", provider="agent", message_count=len(messages))
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(url, json={"messages": messages, "stream": False}, headers=headers)
        except httpx.HTTPError as e:
            logger.error("AI agent request failed", error=str(e), exception_type=type(e).__name__)
            raise AIServiceException(provider="agent")

        if response.status_code >= 400:
            logger.error("AI agent error", status_code=response.status_code, body=response.text[:500])
            raise AIServiceException(provider="agent")

        try:
            data = response.json()
        except ValueError:
            logger.error("AI agent returned invalid JSON", status_code=response.status_code)
            raise AIServiceException(provider="agent")

        return self._extract_agent_reply(data)

    @staticmethod
    def _extract_agent_reply(data) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        return content or FALLBACK_REPLY

    def _get_gemini_client(self) -> genai.Client:
        if not settings.gemini_api_key:
            logger.error("Gemini API key not configured")
            raise AIConfigurationError("gemini")
        if self._gemini_client is None:
            self._gemini_client = genai.Client(api_key=settings.gemini_api_key)
        return self._gemini_client

    @staticmethod
    def _to_gemini_contents(messages: ChatMessages) -> List[types.Content]:
        # Gemini names the assistant role "model"
        return [
            types.Content(
                role="model" if m["role"] == "assistant" else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in messages
        ]

    async def _complete_with_gemini(self, messages: ChatMessages) -> str:
        client = self._get_gemini_client()

        logger.info("Starting Gemini content generation", model=settings.gemini_model,
                    message_count=len(messages))
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=settings.gemini_model,
                    contents=self._to_gemini_contents(messages),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Gemini request timed out", timeout=self.timeout_seconds)
            raise AIServiceException(provider="gemini")
        except Exception as e:
            logger.error("Gemini content generation failed", error=str(e), exception_type=type(e).__name__)
            raise AIServiceException(provider="gemini")

        return response.text or FALLBACK_REPLY


def get_ai_manager() -> AIManager:
    """Dependency provider for the configured AI backend."""
    return AIManager()
