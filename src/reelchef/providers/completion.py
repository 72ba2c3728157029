"""Completion protocol adapters.

Two wire protocols are implemented:

- ``chat``: OpenAI-compatible chat completions through the ``openai`` SDK,
  pointed at ``completion_base_url`` (Ollama, vLLM, OpenAI itself, ...).
- ``generate``: Ollama's ``/api/generate`` endpoint in JSON mode.

Both return the model's raw text; ``providers.normalize`` turns it into
recipes. The tool-calling variants are declared but rejected at startup.
"""

from __future__ import annotations

import logging

import httpx
from openai import APIConnectionError, APIResponseValidationError, APIStatusError, AsyncOpenAI

from reelchef.core.config import ReelChefConfig
from reelchef.core.constants import (
    DECLARED_PROTOCOLS,
    PROTOCOL_CHAT,
    PROTOCOL_GENERATE,
    SUPPORTED_PROTOCOLS,
)
from reelchef.core.exceptions import (
    ResponseShapeError,
    UnsupportedProtocolError,
    UpstreamServiceError,
)
from reelchef.providers.base import CompletionAdapter

logger = logging.getLogger(__name__)


class ChatCompletionAdapter(CompletionAdapter):
    protocol = PROTOCOL_CHAT

    def __init__(self, config: ReelChefConfig, http: httpx.AsyncClient):
        self.config = config
        # Retries belong to the task queue, not the SDK
        self.client = AsyncOpenAI(
            base_url=config.completion_base_url,
            api_key=config.completion_api_key,
            http_client=http,
            max_retries=0,
        )

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.config.completion_model,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIStatusError as e:
            raise UpstreamServiceError(
                f"Chat completion failed: HTTP {e.status_code}",
                service="chat",
                status_code=e.status_code,
                body=e.response.text,
            ) from e
        except APIResponseValidationError as e:
            raise ResponseShapeError(f"Chat completion response has an unexpected shape: {e}") from e
        except APIConnectionError as e:
            raise UpstreamServiceError(f"Chat completion request failed: {e}", service="chat") from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise ResponseShapeError("Chat completion response has no choices")
        content = choices[0].message.content
        if content is None:
            raise ResponseShapeError("Chat completion response has no message content")
        return content


class GenerateAdapter(CompletionAdapter):
    protocol = PROTOCOL_GENERATE

    def __init__(self, config: ReelChefConfig, http: httpx.AsyncClient):
        self.config = config
        self.http = http

    async def complete(self, prompt: str) -> str:
        body = {
            "model": self.config.completion_model,
            "prompt": prompt,
            "format": "json",
            "stream": False,
        }
        try:
            response = await self.http.post(self.config.generate_url, json=body)
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"Generate request failed: {e}", service="generate") from e

        if response.is_error:
            raise UpstreamServiceError(
                f"Generate service returned HTTP {response.status_code}",
                service="generate",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseShapeError(f"Generate service returned malformed JSON: {response.text[:200]!r}") from e
        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise ResponseShapeError("Generate service response has no 'response' string")
        return text


_ADAPTERS: dict[str, type[CompletionAdapter]] = {
    PROTOCOL_CHAT: ChatCompletionAdapter,
    PROTOCOL_GENERATE: GenerateAdapter,
}


def get_completion_adapter(config: ReelChefConfig, http: httpx.AsyncClient) -> CompletionAdapter:
    """Build the adapter for ``config.completion_protocol``. Raises UnsupportedProtocolError."""
    protocol = config.completion_protocol
    if protocol in _ADAPTERS:
        logger.debug("Using %s completion protocol (model %s)", protocol, config.completion_model)
        return _ADAPTERS[protocol](config, http)
    if protocol in DECLARED_PROTOCOLS:
        raise UnsupportedProtocolError(
            f"Completion protocol {protocol!r} is not implemented; use one of {', '.join(SUPPORTED_PROTOCOLS)}"
        )
    raise UnsupportedProtocolError(
        f"Unknown completion protocol {protocol!r}; use one of {', '.join(SUPPORTED_PROTOCOLS)}"
    )
