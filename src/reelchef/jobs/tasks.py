"""Task kinds, payloads and retry policy.

The set of task kinds is closed: each ``TaskKind`` has one payload model, one
retry ceiling, and one stage implementation (see ``reelchef.pipeline.STAGES``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ValidationError

from reelchef.core.config import ReelChefConfig
from reelchef.core.constants import BACKOFF_BASE_SECONDS, DEFAULT_SOURCE_URL_PATTERN
from reelchef.core.exceptions import InvalidInputError


class TaskKind(str, Enum):
    FETCH = "fetch"
    TRANSCRIBE = "transcribe"
    EXTRACT = "extract"


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class FetchPayload(BaseModel):
    source_url: str
    source_id: str


class TranscribePayload(BaseModel):
    video_id: int


class ExtractPayload(BaseModel):
    video_id: int


PAYLOAD_TYPES: dict[TaskKind, type[BaseModel]] = {
    TaskKind.FETCH: FetchPayload,
    TaskKind.TRANSCRIBE: TranscribePayload,
    TaskKind.EXTRACT: ExtractPayload,
}


class TaskRecord(BaseModel):
    id: int
    kind: TaskKind
    payload: dict
    uniq_key: str
    state: TaskState
    attempts: int
    scheduled_at: datetime
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    def decode_payload(self) -> BaseModel:
        try:
            return PAYLOAD_TYPES[self.kind].model_validate(self.payload)
        except ValidationError as e:
            raise InvalidInputError(f"Bad {self.kind.value} payload: {e}") from e


@dataclass(frozen=True)
class DuplicateSkipped:
    """Returned by enqueue when a live task with the same key already exists."""

    uniq_key: str


@dataclass(frozen=True)
class TaskSpec:
    """A task that has not been stored yet."""

    kind: TaskKind
    payload: BaseModel
    uniq_key: str

    @classmethod
    def fetch(cls, source_url: str, pattern: str = DEFAULT_SOURCE_URL_PATTERN) -> TaskSpec:
        source_id = parse_source_id(source_url, pattern)
        return cls(
            kind=TaskKind.FETCH,
            payload=FetchPayload(source_url=source_url.strip(), source_id=source_id),
            uniq_key=uniqueness_key(TaskKind.FETCH, source_id),
        )

    @classmethod
    def transcribe(cls, video_id: int) -> TaskSpec:
        return cls(
            kind=TaskKind.TRANSCRIBE,
            payload=TranscribePayload(video_id=video_id),
            uniq_key=uniqueness_key(TaskKind.TRANSCRIBE, video_id),
        )

    @classmethod
    def extract(cls, video_id: int) -> TaskSpec:
        return cls(
            kind=TaskKind.EXTRACT,
            payload=ExtractPayload(video_id=video_id),
            uniq_key=uniqueness_key(TaskKind.EXTRACT, video_id),
        )


def uniqueness_key(kind: TaskKind, stable_input: object) -> str:
    return f"{kind.value}:{stable_input}"


def parse_source_id(url: str, pattern: str = DEFAULT_SOURCE_URL_PATTERN) -> str:
    """Derive the external id from a reel URL. Raises InvalidInputError."""
    match = re.match(pattern, url.strip())
    if not match or not match.group(1):
        raise InvalidInputError(f"Invalid reel URL: {url}")
    return match.group(1)


def backoff(attempt: int, base_seconds: int = BACKOFF_BASE_SECONDS) -> int:
    """Delay before the next attempt: 60s, 120s, 240s, ... for attempt 0, 1, 2."""
    return base_seconds * 2 ** attempt


def max_retries(kind: TaskKind, config: ReelChefConfig) -> int:
    return {
        TaskKind.FETCH: config.fetch_max_retries,
        TaskKind.TRANSCRIBE: config.transcribe_max_retries,
        TaskKind.EXTRACT: config.extract_max_retries,
    }[kind]
