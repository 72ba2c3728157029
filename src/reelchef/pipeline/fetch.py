"""Fetch stage: download a reel and register the video."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from reelchef.core.exceptions import ResponseShapeError
from reelchef.db.repository import DuplicateVideoError
from reelchef.jobs.tasks import FetchPayload, TaskSpec
from reelchef.pipeline import tools
from reelchef.pipeline.base import StageResult

if TYPE_CHECKING:
    from reelchef.core.context import ExecutionContext

logger = logging.getLogger(__name__)


def _read_info(info_path: Path) -> dict:
    """Parse the downloader sidecar. A bad sidecar is removed so the next attempt re-downloads."""
    try:
        info = json.loads(info_path.read_text())
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        info_path.unlink(missing_ok=True)
        raise ResponseShapeError(f"Unreadable info sidecar {info_path.name}: {e}", retryable=True) from e
    if not isinstance(info, dict):
        info_path.unlink(missing_ok=True)
        raise ResponseShapeError(
            f"Info sidecar {info_path.name} is not a JSON object", retryable=True
        )
    return info


async def run_fetch(ctx: ExecutionContext, payload: FetchPayload) -> StageResult:
    existing = ctx.repo.get_video_by_source_id(payload.source_id)
    if existing is not None:
        if existing.transcript is None:
            # Stored by an earlier attempt that never queued its follow-up
            logger.info("Video %s already stored as %d, queueing transcription", payload.source_id, existing.id)
            return StageResult(next_tasks=[TaskSpec.transcribe(existing.id)])
        logger.info("Video %s already stored as %d, skipping", payload.source_id, existing.id)
        return StageResult()

    media_path = ctx.video_path(payload.source_id)
    info_path = ctx.info_path(payload.source_id)
    if media_path.exists() and info_path.exists():
        logger.info("Reusing cached download for %s", payload.source_id)
    else:
        await tools.download_media(
            ctx.config.yt_dlp_path,
            payload.source_url,
            media_path,
            info_path,
            timeout=ctx.config.tool_timeout,
        )

    info = _read_info(info_path)
    try:
        video = ctx.repo.insert_video(payload.source_id, payload.source_url, info)
    except DuplicateVideoError:
        video = ctx.repo.get_video_by_source_id(payload.source_id)
        if video is None:
            raise
        logger.info("Video %s was stored concurrently as %d", payload.source_id, video.id)
    else:
        logger.info("Stored video %s as %d", payload.source_id, video.id)

    return StageResult(next_tasks=[TaskSpec.transcribe(video.id)])
