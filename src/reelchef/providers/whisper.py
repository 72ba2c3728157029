"""Speech-to-text client for whisper-compatible HTTP services."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx
from pydantic import ValidationError

from reelchef.core.config import ReelChefConfig
from reelchef.core.exceptions import ResponseShapeError, UpstreamServiceError
from reelchef.db.models import Transcript
from reelchef.providers.base import TranscriberProvider

logger = logging.getLogger(__name__)

_BODY_PREVIEW = 500


def parse_transcript(body: str) -> Transcript:
    """Decode a verbose_json body.

    Both failure modes are retryable; the message tells malformed JSON apart
    from JSON of the wrong shape.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ResponseShapeError(
            f"Transcription service returned malformed JSON ({e}): {body[:_BODY_PREVIEW]!r}",
            retryable=True,
        ) from e
    try:
        return Transcript.model_validate(data)
    except ValidationError as e:
        raise ResponseShapeError(
            "Transcription service returned JSON in an unexpected shape "
            f"({e.error_count()} errors): {json.dumps(data)[:_BODY_PREVIEW]}",
            retryable=True,
        ) from e


class WhisperTranscriber(TranscriberProvider):
    def __init__(self, config: ReelChefConfig, http: httpx.AsyncClient):
        self.config = config
        self.http = http

    async def transcribe(self, audio_path: Path) -> Transcript:
        data = {
            "model": self.config.whisper_model,
            "response_format": "verbose_json",
            "language": self.config.whisper_language,
        }
        headers = {"Authorization": f"Bearer {self.config.whisper_key}"}
        logger.debug("Uploading %s to %s", audio_path.name, self.config.whisper_url)
        try:
            with open(audio_path, "rb") as f:
                response = await self.http.post(
                    self.config.whisper_url,
                    data=data,
                    files={"file": (audio_path.name, f, "audio/mpeg")},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"Transcription request failed: {e}", service="whisper") from e

        if response.is_error:
            raise UpstreamServiceError(
                f"Transcription service returned HTTP {response.status_code}",
                service="whisper",
                status_code=response.status_code,
                body=response.text,
            )
        return parse_transcript(response.text)
