"""Configuration schemas.

Loaded from the TOML files in livepage/config/ by
livepage.providers.registry.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """An OpenAI-compatible chat-completion endpoint.

    Loaded from providers.toml. `max_tokens` is the provider's context
    budget; `completion_cap` bounds the requested completion length.
    """

    key: str = Field(description="Registry key (e.g. 'openai', 'sambanova')")
    name: str = Field(description="Human-friendly provider name")
    base_url: str = Field(description="API base URL, without /chat/completions")
    model: str = Field(description="Default model id")
    api_key_env: str = Field(description="Environment variable holding the API key")
    max_tokens: int = Field(gt=0, description="Context budget for prompt plus prior HTML")
    completion_cap: int = Field(default=16_000, gt=0)
    base_url_env: str = Field(default="", description="Env var overriding base_url")
    model_env: str = Field(default="", description="Env var overriding model")

    def resolved_base_url(self) -> str:
        if self.base_url_env and os.environ.get(self.base_url_env):
            return os.environ[self.base_url_env]
        return self.base_url

    def resolved_model(self) -> str:
        if self.model_env and os.environ.get(self.model_env):
            return os.environ[self.model_env]
        return self.model

    def resolved_api_key(self) -> str:
        return os.environ.get(self.api_key_env, "")


class GenerationSettings(BaseModel):
    """Tunables for the reassembly loop."""

    throttle_interval: float = Field(
        default=1.0, ge=0.0, description="Minimum seconds between published snapshots"
    )
    growth_threshold: int = Field(
        default=200, ge=0, description="Candidate length that triggers scroll hints"
    )
    idle_timeout: float = Field(
        default=60.0, gt=0.0, description="Seconds to wait for the next chunk"
    )
    stop_on_close_tag: bool = Field(
        default=True, description="Stop reading once </html> has been streamed"
    )


class ServerSettings(BaseModel):
    """HTTP host settings."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, gt=0)
    max_requests_per_ip: int = Field(default=4, gt=0)
    rate_limit_window: int = Field(default=86_400, gt=0, description="Seconds")
    auth_cookie: str = Field(default="hf_token")
    session_cookie: str = Field(default="livepage_session")


class AppSettings(BaseModel):
    """Everything in defaults.toml."""

    default_provider: str = Field(default="openai")
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
