"""Pydantic schemas shared across livepage."""

from livepage.schemas.config import (
    AppSettings,
    GenerationSettings,
    ProviderConfig,
    ServerSettings,
)
from livepage.schemas.generation import GenerationRequest, ModelParameters
from livepage.schemas.streaming import (
    GenerationResult,
    GenerationUpdate,
    GrowthHint,
    Snapshot,
    StreamState,
)

__all__ = [
    "AppSettings",
    "GenerationRequest",
    "GenerationResult",
    "GenerationSettings",
    "GenerationUpdate",
    "GrowthHint",
    "ModelParameters",
    "ProviderConfig",
    "ServerSettings",
    "Snapshot",
    "StreamState",
]
