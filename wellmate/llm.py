"""LLM client: HTTP connection to a chat-completions backend.

The orchestrator injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, messages: list[dict[str, str]]) -> str: ...

`stage` identifies which pipeline mode is calling ("dialogue",
"chart_interpretation", "symptom_analysis"). The implementation may use it
for logging or routing; the simplest implementation ignores it.

Two implementations are provided:

    ChatLLM   : real HTTP client for OpenAI-compatible /chat/completions
                endpoints. Accepts both the OpenAI and the Gemini response
                shape.
    EchoLLM   : returns the last message content unchanged. Useful for
                smoke-testing the wiring without a running model.

Every call made by the orchestrator goes through call_with_deadline(), so a
hung upstream surfaces as ModelTimeoutError instead of stalling the caller.
Nothing in this module retries; TransportError.retryable is informational.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, messages: Messages) -> str: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ConfigError(RuntimeError):
    """Raised when the backend cannot be called at all (missing API key)."""


class LLMError(RuntimeError):
    """Base for recoverable model failures. Callers fall back to templates."""


class TransportError(LLMError):
    """Network or HTTP failure talking to the backend."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def retryable(self) -> bool:
        if self.status is None:
            return True
        return self.status >= 500 or self.status == 429


class ModelTimeoutError(LLMError):
    """The call exceeded its deadline."""


class NoContentError(LLMError):
    """The response body carried no text in any known shape."""


# ---------------------------------------------------------------------------
# Response shapes
# ---------------------------------------------------------------------------

def extract_content(data: Any) -> str:
    """Pull the completion text out of a response body.

    Shape A (OpenAI):  {"choices": [{"message": {"content": "..."}}]}
                       (a bare choices[0].text is accepted too)
    Shape B (Gemini):  {"candidates": [{"content": {"parts": [{"text": ...}]}}]}
                       parts are concatenated.

    Raises NoContentError if neither shape yields non-empty text.
    """
    if not isinstance(data, dict):
        raise NoContentError("Response body is not a JSON object")

    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        first = choices[0]
        message = first.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if content is None:
            content = first.get("text")
        if isinstance(content, str) and content.strip():
            return content.strip()

    candidates = data.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if isinstance(parts, list):
            text = "".join(
                p.get("text") or "" for p in parts if isinstance(p, dict)
            ).strip()
            if text:
                return text

    raise NoContentError("Response contained no valid content")


# ---------------------------------------------------------------------------
# ChatLLM: connects to a real backend
# ---------------------------------------------------------------------------

class ChatLLM:
    """Async HTTP client for OpenAI-compatible chat-completions backends.

    POST {base_url}/chat/completions
         {"model": ..., "messages": [...], "temperature": ..., "max_tokens": ...}

    Args:
        base_url:     Base URL of the backend, e.g. "https://host/v1".
        api_key:      Bearer token. Calling without one raises ConfigError.
        model:        Model identifier sent in the body.
        temperature:  Sampling temperature. Defaults to 0.8.
        max_tokens:   Completion length cap. Defaults to 150.
        timeout:      HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "",
        temperature: float = 0.8,
        max_tokens: int = 150,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _build_request(self, messages: Messages) -> tuple[str, dict]:
        """Return (url, body) for a chat-completions call."""
        url = f"{self._base_url}/chat/completions"
        body: dict = {
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if self._model:
            body["model"] = self._model
        return url, body

    async def __call__(self, stage: str, messages: Messages) -> str:
        if not self._api_key:
            raise ConfigError("LLM API key not configured")

        url, body = self._build_request(messages)
        prompt_len = sum(len(m.get("content", "")) for m in messages)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, prompt_len)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise TransportError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportError(f"LLM backend returned HTTP {status}", status=status) from e
        except httpx.TimeoutException as e:
            raise ModelTimeoutError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise TransportError(f"Connection to LLM backend failed: {type(e).__name__}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError("LLM backend returned invalid JSON") from e

        text = extract_content(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM: returns the user turn unchanged; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the content of the last message as-is. No network calls."""

    async def __call__(self, stage: str, messages: Messages) -> str:
        logger.debug("EchoLLM stage=%s messages=%d", stage, len(messages))
        return messages[-1]["content"] if messages else ""


# ---------------------------------------------------------------------------
# Deadline wrapper
# ---------------------------------------------------------------------------

async def call_with_deadline(
    llm: LLM, stage: str, messages: Messages, timeout: float
) -> str:
    """Await one model call, cancelling it once `timeout` seconds elapse.

    Each call gets its own timer; a timeout surfaces as ModelTimeoutError.
    """
    try:
        return await asyncio.wait_for(llm(stage, messages), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ModelTimeoutError(f"{stage} call exceeded {timeout}s deadline") from e
