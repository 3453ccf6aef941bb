"""Request bodies accepted by the HTTP server."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from livepage.schemas.generation import GenerationRequest, ModelParameters


class AskAIRequest(BaseModel):
    """Body of POST /api/ask-ai (camelCase keys as sent by the browser)."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=1)
    html: str | None = None
    previous_prompt: str | None = Field(default=None, alias="previousPrompt")
    provider: str | None = None
    model: str | None = None
    language: str | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(
            prompt=self.prompt,
            html=self.html,
            previous_prompt=self.previous_prompt,
            language=self.language,
            model_params=ModelParameters(
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                model=self.model,
            ),
        )


class OptimizePromptRequest(BaseModel):
    """Body of POST /api/optimize-prompt."""

    prompt: str = Field(min_length=1)
    language: str | None = None
    provider: str | None = None
