"""Generation request schemas.

The request payload is mostly pass-through: the core only forwards these
values in the single outbound chat-completion request.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ModelParameters(BaseModel):
    """Per-request model overrides chosen in the settings dialog."""

    max_tokens: int | None = Field(default=None, gt=0, description="Completion token limit")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    api_key: str | None = Field(default=None, description="Overrides the provider's key")
    base_url: str | None = Field(default=None, description="Overrides the provider's endpoint")
    model: str | None = Field(default=None, description="Overrides the provider's model id")


class GenerationRequest(BaseModel):
    """One user-initiated page generation."""

    prompt: str = Field(description="What the page should be")
    html: str | None = Field(default=None, description="Current page, when iterating on it")
    previous_prompt: str | None = Field(default=None, description="Prompt that produced `html`")
    language: str | None = Field(default=None, description="UI language hint, e.g. 'en' or 'zh'")
    model_params: ModelParameters = Field(default_factory=ModelParameters)

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value

    @property
    def context_size(self) -> int:
        """Characters of context sent upstream, used as a token estimate."""
        size = len(self.prompt)
        if self.previous_prompt:
            size += len(self.previous_prompt)
        if self.html:
            size += len(self.html)
        return size
