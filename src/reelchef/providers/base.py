"""Abstract provider interfaces for the speech-to-text and completion services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from reelchef.db.models import Transcript


class TranscriberProvider(ABC):
    @abstractmethod
    async def transcribe(self, audio_path: Path) -> Transcript:
        ...


class CompletionAdapter(ABC):
    """One completion protocol. ``complete`` returns the model's raw text."""

    protocol: str

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        ...
