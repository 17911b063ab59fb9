"""Client for the external text-to-tags model.

The model is reached through an OpenAI-compatible chat completions endpoint and
asked for ``{"Phrases": [...]}``. Tagging is best-effort: any failure yields no
tags instead of failing the note write.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx

from notekeeper_backend.config import settings

logger = logging.getLogger(__name__)

_TAGS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"Phrases": {"type": "array", "items": {"type": "string"}}},
    "required": ["Phrases"],
    "additionalProperties": False,
}


class TagGenerator(Protocol):
    async def generate_tags(self, details: str) -> list[str]: ...


class TagGeneratorError(RuntimeError):
    pass


def _build_prompt(details: str) -> str:
    return f"Generate a JSON output of only 2, one-word tag based on: {details}"


def parse_tags_response(text: str) -> list[str]:
    """Extract the ``Phrases`` list from the model's message content."""
    raw = (text or "").strip().strip("`").strip()
    if raw.lower().startswith("json"):
        raw = raw[4:].strip()
    if not raw.startswith("{") or not raw.endswith("}"):
        raise TagGeneratorError("AI response is not a JSON object")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise TagGeneratorError("AI response is not valid JSON") from exc

    phrases = data.get("Phrases") if isinstance(data, dict) else None
    if not isinstance(phrases, list):
        return []
    return [p.strip() for p in phrases if isinstance(p, str) and p.strip()]


class ChatCompletionsTagGenerator:
    def __init__(
        self,
        *,
        endpoint_url: str,
        api_key: str,
        model: str,
        temperature: float,
        top_p: float,
        max_tokens: int,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint_url = endpoint_url.strip()
        self._api_key = api_key.strip()
        self._model = model
        self._temperature = temperature
        self._top_p = top_p
        self._max_tokens = max_tokens
        self._timeout = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        # Azure OpenAI uses api-key; OpenAI-compatible servers use Bearer.
        return {"api-key": self._api_key, "Authorization": f"Bearer {self._api_key}"}

    async def _complete(self, prompt: str) -> str:
        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature,
            "top_p": self._top_p,
            "max_tokens": self._max_tokens,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "ChatResponse", "schema": _TAGS_SCHEMA},
            },
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(self._endpoint_url, headers=self._headers(), json=payload)
        if resp.status_code >= 400:
            raise TagGeneratorError(f"chat completion failed: HTTP {resp.status_code}")
        body = resp.json()
        try:
            return str(body["choices"][0]["message"]["content"] or "")
        except (KeyError, IndexError, TypeError) as exc:
            raise TagGeneratorError("chat completion response has no message") from exc

    async def generate_tags(self, details: str) -> list[str]:
        if not self._endpoint_url:
            return []
        try:
            text = await self._complete(_build_prompt(details))
            return parse_tags_response(text)
        except (httpx.HTTPError, TagGeneratorError, ValueError):
            logger.error("tag generation failed", exc_info=True)
            return []


def get_tag_generator() -> TagGenerator:
    return ChatCompletionsTagGenerator(
        endpoint_url=settings.ai_deployment_uri,
        api_key=settings.ai_api_key,
        model=settings.ai_deployment_model_name,
        temperature=settings.ai_temperature,
        top_p=settings.ai_top_p,
        max_tokens=settings.ai_max_output_tokens,
        timeout_seconds=settings.ai_request_timeout_seconds,
    )
