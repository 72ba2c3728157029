"""Pydantic models for database entities."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TranscriptSegment(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | None = None
    start: float
    end: float
    text: str


class Transcript(BaseModel):
    """verbose_json transcription. Unknown service fields are kept as-is."""

    model_config = ConfigDict(extra="allow")

    text: str
    segments: list[TranscriptSegment] = Field(default_factory=list)


class VideoRecord(BaseModel):
    id: int
    source_id: str
    source_url: str
    info: dict = Field(default_factory=dict)
    transcript: Transcript | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def caption(self) -> str:
        """Caption text from the downloader metadata."""
        value = self.info.get("description")
        return value if isinstance(value, str) else ""


class RecipeRecord(BaseModel):
    id: int
    video_id: int
    title: str
    ingredients: list[str]
    instructions: list[str]
    generated_at: datetime
