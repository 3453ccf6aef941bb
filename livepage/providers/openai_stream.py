"""Streaming requestor for OpenAI-compatible chat-completion endpoints.

Sends one POST /chat/completions with stream=true via httpx and yields
the response body bytes untouched; decoding is the reassembler's job.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from livepage.errors import ConfigurationError, ProviderError
from livepage.prompts import system_prompt
from livepage.providers.base import StreamRequestor
from livepage.schemas.config import ProviderConfig
from livepage.schemas.generation import GenerationRequest
from livepage.stream.cancellation import CancellationToken

logger = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 10.0
_DEFAULT_READ_TIMEOUT = 60.0


def error_message_from_response(response: httpx.Response) -> str:
    """Best human-readable message from a failed response body.

    Prefers a JSON `error.message`, then a top-level `message`, then the
    raw text, then a generic status line.
    """
    fallback = f"Provider error: {response.status_code} {response.reason_phrase}".strip()
    content_type = response.headers.get("content-type", "")

    if "application/json" in content_type:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
            if body.get("message"):
                return str(body["message"])
        return fallback

    text = response.text.strip()
    return text or fallback


class OpenAIStreamRequestor(StreamRequestor):
    """Raw-body streaming over httpx.

    Pass `client` to share a connection pool (or a MockTransport in tests);
    otherwise a client is created and closed per generation.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client: httpx.AsyncClient | None = None,
        read_timeout: float = _DEFAULT_READ_TIMEOUT,
    ) -> None:
        super().__init__(config)
        self._client = client
        self._timeout = httpx.Timeout(read_timeout, connect=_CONNECT_TIMEOUT)

    def build_messages(self, request: GenerationRequest) -> list[dict[str, str]]:
        """System prompt, prior turn, current page, then the new prompt."""
        messages = [
            {"role": "system", "content": system_prompt(request.language)},
        ]
        if request.previous_prompt:
            messages.append({"role": "user", "content": request.previous_prompt})
        if request.html:
            messages.append(
                {"role": "assistant", "content": f"The current code is: {request.html}."}
            )
        messages.append({"role": "user", "content": request.prompt})
        return messages

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        params = request.model_params
        max_tokens = self._config.completion_cap
        if params.max_tokens:
            max_tokens = min(params.max_tokens, max_tokens)

        payload: dict[str, Any] = {
            "model": params.model or self._config.resolved_model(),
            "messages": self.build_messages(request),
            "stream": True,
            "max_tokens": max_tokens,
        }
        if params.temperature is not None:
            payload["temperature"] = params.temperature
        return payload

    def endpoint(self, request: GenerationRequest) -> str:
        base_url = request.model_params.base_url or self._config.resolved_base_url()
        return f"{base_url.rstrip('/')}/chat/completions"

    def _api_key(self, request: GenerationRequest) -> str:
        api_key = request.model_params.api_key or self._config.resolved_api_key()
        if not api_key:
            raise ConfigurationError(
                f"{self._config.name} API key is not configured. "
                f"Set {self._config.api_key_env} or pass an api_key."
            )
        return api_key

    async def stream(
        self,
        request: GenerationRequest,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[bytes]:
        payload = self.build_payload(request)
        url = self.endpoint(request)
        headers = {"Authorization": f"Bearer {self._api_key(request)}"}

        logger.info(
            "Requesting %s (model=%s, max_tokens=%s)",
            url, payload["model"], payload["max_tokens"],
        )

        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            async with client.stream("POST", url, json=payload, headers=headers) as response:
                if not response.is_success:
                    await response.aread()
                    message = error_message_from_response(response)
                    logger.warning(
                        "%s returned %d: %s", self._config.name, response.status_code, message,
                    )
                    raise ProviderError(message, status_code=response.status_code)

                async for chunk in response.aiter_bytes():
                    if token is not None and token.cancelled:
                        logger.debug("Stopping body read: %s", token.reason)
                        return
                    if chunk:
                        yield chunk
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Connection to {self._config.name} failed: {exc or type(exc).__name__}"
            ) from exc
        finally:
            if owns_client:
                await client.aclose()
