"""LLM client. HTTP connection to a chat-completion backend.

Callers inject an object matching the LLM protocol:

    async def complete(self, stage, system, messages) -> str
    def stream(self, stage, system, messages) -> AsyncIterator[str]

`stage` names the caller ("dungeon_master", "summary", "character_details")
and is only used for logging. `messages` is a list of {"role", "content"}
dicts with role "user" or "assistant"; the system prompt is passed separately.

Two implementations are provided:

    HttpLLM: real HTTP client for OpenAI-compatible and Ollama backends,
             selected by provider_format.
    EchoLLM: replies with the last user message. Useful for smoke-testing
             the room wiring without a running model.

Production code builds an HttpLLM from Settings (see build_llm). Tests use
StubLLM from tests/conftest.py instead.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Literal, Protocol

import httpx

from dungeon_chat.config import Settings

logger = logging.getLogger(__name__)

ChatMessage = dict[str, str]


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def complete(self, stage: str, system: str, messages: list[ChatMessage]) -> str: ...

    def stream(self, stage: str, system: str, messages: list[ChatMessage]) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# HttpLLM: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "ollama"]


class HttpLLM:
    """Async HTTP client for chat-completion backends.

    Supported formats:
      "openai" : POST /v1/chat/completions  {"model", "messages", "stream"}
                  Response: {"choices": [{"message": {"content": "..."}}]}
                  Stream:   SSE lines  data: {"choices": [{"delta": {"content": "..."}}]}
                            terminated by  data: [DONE]
      "ollama" : POST /api/chat  {"model", "messages", "stream"}
                  Response: {"message": {"content": "..."}}
                  Stream:   one JSON object per line, last one has "done": true

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.openai.com".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier sent with every request.
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "gpt-4o-mini",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, system: str, messages: list[ChatMessage], stream: bool) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        body: dict = {
            "model": self._model,
            "messages": [{"role": "system", "content": system}, *messages],
            "stream": stream,
        }
        if self._format == "ollama":
            return f"{self._base_url}/api/chat", body
        return f"{self._base_url}/v1/chat/completions", body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from a non-streamed response body."""
        if self._format == "ollama":
            message = data.get("message")
            if not isinstance(message, dict) or "content" not in message:
                raise LLMError("Unexpected response format from Ollama backend")
            return message["content"]

        choices = data.get("choices")
        if not choices or "content" not in (choices[0].get("message") or {}):
            raise LLMError("Unexpected response format from OpenAI-compatible backend")
        return choices[0]["message"]["content"] or ""

    def _parse_stream_line(self, line: str) -> tuple[str, bool]:
        """Return (text delta, finished) for one line of a streamed body."""
        if self._format == "ollama":
            chunk = json.loads(line)
            return chunk.get("message", {}).get("content") or "", bool(chunk.get("done"))

        if not line.startswith("data:"):
            return "", False  # SSE comments and event names
        payload = line[len("data:"):].strip()
        if payload == "[DONE]":
            return "", True
        chunk = json.loads(payload)
        choices = chunk.get("choices") or [{}]
        return (choices[0].get("delta") or {}).get("content") or "", False

    async def complete(self, stage: str, system: str, messages: list[ChatMessage]) -> str:
        url, body = self._build_request(system, messages, stream=False)
        logger.debug("llm call stage=%s url=%s messages=%d", stage, url, len(messages))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"LLM backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text

    async def stream(self, stage: str, system: str, messages: list[ChatMessage]) -> AsyncIterator[str]:
        url, body = self._build_request(system, messages, stream=True)
        logger.debug("llm stream stage=%s url=%s messages=%d", stage, url, len(messages))

        total = 0
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream("POST", url, json=body, headers=self._headers()) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            delta, finished = self._parse_stream_line(line)
                        except json.JSONDecodeError as e:
                            raise LLMError(f"Malformed stream chunk from LLM backend: {line[:80]!r}") from e
                        if delta:
                            total += len(delta)
                            yield delta
                        if finished:
                            break
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"LLM backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM stream interrupted: {e}") from e

        logger.debug("llm stream stage=%s finished len=%d", stage, total)


# ---------------------------------------------------------------------------
# EchoLLM: replies with the last user message; no network calls
# ---------------------------------------------------------------------------

class EchoLLM:
    """Echoes the last user turn back. No network calls.

    Lets you verify the room → DM → message log wiring end-to-end without a
    running model.
    """

    def _last_user(self, messages: list[ChatMessage]) -> str:
        for message in reversed(messages):
            if message.get("role") == "user":
                return message.get("content", "")
        return ""

    async def complete(self, stage: str, system: str, messages: list[ChatMessage]) -> str:
        logger.debug("EchoLLM stage=%s messages=%d", stage, len(messages))
        return self._last_user(messages)

    async def stream(self, stage: str, system: str, messages: list[ChatMessage]) -> AsyncIterator[str]:
        logger.debug("EchoLLM stream stage=%s messages=%d", stage, len(messages))
        for word in self._last_user(messages).split(" "):
            yield word + " "


def build_llm(settings: Settings) -> HttpLLM | EchoLLM | None:
    """LLM from settings, or None when no backend is configured."""
    if not settings.llm_configured:
        return None
    if settings.LLM_PROVIDER_FORMAT == "echo":
        logger.info("using EchoLLM: narration echoes the last player message")
        return EchoLLM()
    return HttpLLM(
        provider_url=settings.LLM_PROVIDER_URL,
        api_key=settings.LLM_API_KEY,
        provider_format=settings.LLM_PROVIDER_FORMAT,
        model=settings.LLM_MODEL,
        timeout=settings.LLM_TIMEOUT,
    )


# ---------------------------------------------------------------------------
# LLMError: raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
