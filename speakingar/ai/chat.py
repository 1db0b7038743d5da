"""
Minimal client for an OpenAI-compatible chat completions endpoint.

Only the subset both generators need: a system + user message pair in,
the first choice's message content out. Error bodies of the form
``{"error": {"message": ...}}`` become ``ServerError``; any other
non-2xx status becomes ``HTTPError``.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from speakingar.app.logging_setup import log_event
from .errors import HTTPError, InvalidResponse, ServerError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    err = body.get("error")
    if not isinstance(err, dict):
        return None
    message = err.get("message")
    return message if isinstance(message, str) else None


def _first_content(body: Any) -> str:
    if not isinstance(body, dict):
        raise InvalidResponse()
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        raise InvalidResponse()
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise InvalidResponse()
    return content


def parse_json_object(content: str) -> Dict[str, Any]:
    """Decode a model reply that must be a single JSON object."""
    try:
        payload = json.loads(content)
    except ValueError as e:
        raise InvalidResponse() from e
    if not isinstance(payload, dict):
        raise InvalidResponse()
    return payload


class ChatCompletionClient:
    def __init__(
        self,
        *,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self._http = http_client
        self._owns_http = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    def build_payload(
        self,
        messages: List[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    async def complete(
        self,
        messages: List[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        payload = self.build_payload(messages, max_tokens=max_tokens, temperature=temperature)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        t0 = time.perf_counter()
        response = await self._client().post(self.endpoint, json=payload, headers=headers)
        ms = round((time.perf_counter() - t0) * 1000.0, 2)

        if not response.is_success:
            message = _error_message(response)
            log_event(
                logger,
                logging.WARNING,
                "chat_http_error",
                status=response.status_code,
                server_message=message,
                ms=ms,
            )
            if message is not None:
                raise ServerError(message)
            raise HTTPError(response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise InvalidResponse() from e
        content = _first_content(body)
        log_event(logger, logging.DEBUG, "chat_completed", status=response.status_code, ms=ms, chars=len(content))
        return content

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
