"""Transcribe stage: media -> audio -> transcript."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reelchef.core.exceptions import RecordNotFoundError
from reelchef.jobs.tasks import TaskSpec, TranscribePayload
from reelchef.pipeline import tools
from reelchef.pipeline.base import StageResult

if TYPE_CHECKING:
    from reelchef.core.context import ExecutionContext

logger = logging.getLogger(__name__)


async def run_transcribe(ctx: ExecutionContext, payload: TranscribePayload) -> StageResult:
    video = ctx.repo.get_video(payload.video_id)
    audio_path = ctx.audio_path(video.source_id)

    if audio_path.exists():
        logger.info("Reusing cached audio for video %d", video.id)
    else:
        media_path = ctx.video_path(video.source_id)
        if not media_path.exists():
            raise RecordNotFoundError(f"Media file missing for video {video.id}: {media_path}")
        await tools.transcode_audio(
            ctx.config.ffmpeg_path,
            media_path,
            audio_path,
            timeout=ctx.config.tool_timeout,
        )

    transcript = await ctx.transcriber.transcribe(audio_path)
    ctx.repo.set_transcript(video.id, transcript)
    logger.info("Transcribed video %d (%d segments)", video.id, len(transcript.segments))

    return StageResult(next_tasks=[TaskSpec.extract(video.id)])
