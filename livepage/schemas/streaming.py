"""Streaming schemas for live HTML reconstruction.

Defines the stream lifecycle states and the values a generation hands
to its consumer: throttled snapshots, scroll hints, and one terminal
result.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class StreamState(StrEnum):
    """Lifecycle of one generation request.

    Idle -> Streaming on dispatch; Streaming -> one of the three terminal
    states. Terminal states never transition further.
    """

    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.COMPLETED, StreamState.CANCELLED, StreamState.FAILED)


class Snapshot(BaseModel):
    """A force-closed HTML candidate derived from the transcript at one instant."""

    model_config = ConfigDict(frozen=True)

    html: str = Field(description="Renderable HTML document")
    transcript_length: int = Field(
        ge=0, description="Transcript length the snapshot was derived from"
    )
    final: bool = Field(
        default=False, description="True for the unthrottled finalization snapshot"
    )


class GrowthHint(BaseModel):
    """Tells the consumer to follow the output; decoupled from rendering."""

    model_config = ConfigDict(frozen=True)

    candidate_length: int = Field(ge=0, description="Length of the current candidate snapshot")


class GenerationResult(BaseModel):
    """Terminal status of a generation."""

    model_config = ConfigDict(frozen=True)

    status: StreamState = Field(description="completed, cancelled or failed")
    html: str | None = Field(
        default=None,
        description="Final output; best-effort partial for cancelled/failed runs",
    )
    error: str | None = Field(default=None, description="Human-readable failure reason")
    status_code: int | None = Field(
        default=None, description="Provider HTTP status for failed requests"
    )
    transcript_length: int = Field(default=0, ge=0)
    malformed_lines: int = Field(default=0, ge=0)

    @property
    def ok(self) -> bool:
        return self.status == StreamState.COMPLETED


GenerationUpdate = Snapshot | GrowthHint | GenerationResult
