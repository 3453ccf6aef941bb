"""Prompt optimizer backed by LiteLLM.

Rewrites a short page description into a detailed brief with a single
non-streaming completion. Every catalog provider is OpenAI-compatible, so
calls route through LiteLLM's `openai/` adapter with a custom api_base.
Handles timeouts and retry with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from livepage.errors import ConfigurationError, ProviderError
from livepage.prompts import optimize_prompt
from livepage.schemas.config import ProviderConfig

logger = logging.getLogger(__name__)

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class PromptOptimizer:
    """Turns a terse page idea into a detailed generation prompt."""

    def __init__(self, config: ProviderConfig, *, api_key: str | None = None) -> None:
        self._config = config
        self._api_key = api_key or config.resolved_api_key()

    async def optimize(
        self,
        prompt: str,
        *,
        language: str | None = None,
        timeout: int = 60,
    ) -> str:
        """Return the rewritten prompt.

        Raises:
            ConfigurationError: If no API key is configured.
            TimeoutError: If every attempt timed out.
            ProviderError: If the call fails after all retries.
        """
        if not prompt.strip():
            raise ValueError("prompt must not be empty")
        if not self._api_key:
            raise ConfigurationError(
                f"{self._config.name} API key is not configured. "
                f"Set {self._config.api_key_env}."
            )

        kwargs = {
            "model": f"openai/{self._config.resolved_model()}",
            "api_base": self._config.resolved_base_url(),
            "api_key": self._api_key,
            "messages": [
                {"role": "system", "content": optimize_prompt(language)},
                {"role": "user", "content": prompt},
            ],
            "timeout": float(timeout),
        }
        response = await self._call_with_retry(kwargs)

        content = ""
        if response.choices and response.choices[0].message:
            content = response.choices[0].message.content or ""
        content = content.strip()
        if not content:
            raise ProviderError(f"{self._config.name} returned an empty prompt")
        return content

    async def _call_with_retry(self, kwargs: dict) -> litellm.ModelResponse:
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) are raised immediately.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Prompt optimization timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError:
                raise ProviderError(
                    f"Authentication failed for {self._config.name}. "
                    f"Check that {self._config.api_key_env} is set correctly.",
                    status_code=401,
                ) from None
            except litellm.BadRequestError as e:
                raise ProviderError(
                    f"Bad request to {self._config.name}: {e}", status_code=400,
                ) from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, _MAX_RETRIES, self._config.name,
                    _short_error_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise ProviderError(
            f"Prompt optimization via {self._config.name} failed after "
            f"{_MAX_RETRIES} retries: {last_error}"
        ) from last_error
