"""Extract stage: caption + transcript -> recipes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reelchef.core.constants import RECIPE_POLICY_REPLACE
from reelchef.jobs.tasks import ExtractPayload
from reelchef.pipeline.base import StageResult
from reelchef.pipeline.prompt import render_prompt
from reelchef.providers.normalize import parse_recipes
from reelchef.utils.timeutil import utc_now

if TYPE_CHECKING:
    from reelchef.core.context import ExecutionContext

logger = logging.getLogger(__name__)


async def run_extract(ctx: ExecutionContext, payload: ExtractPayload) -> StageResult:
    video = ctx.repo.get_video(payload.video_id)

    transcript = video.transcript.text if video.transcript else ""
    if not transcript:
        logger.info("Video %d has no transcript, extracting from caption only", video.id)
    prompt = render_prompt(ctx.prompt_template, caption=video.caption, transcript=transcript)

    raw = await ctx.completion.complete(prompt)
    recipes = parse_recipes(raw)

    ids = ctx.repo.save_recipes(
        video.id,
        recipes,
        replace=ctx.config.recipe_policy == RECIPE_POLICY_REPLACE,
        generated_at=utc_now(),
    )
    logger.info("Extracted %d recipe(s) for video %d", len(ids), video.id)
    return StageResult()
