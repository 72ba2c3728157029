"""Pipeline stages: fetch -> transcribe -> extract."""

from __future__ import annotations

from reelchef.jobs.tasks import TaskKind
from reelchef.pipeline.base import Stage, StageResult
from reelchef.pipeline.extract import run_extract
from reelchef.pipeline.fetch import run_fetch
from reelchef.pipeline.transcribe import run_transcribe

STAGES: dict[TaskKind, Stage] = {
    TaskKind.FETCH: run_fetch,
    TaskKind.TRANSCRIBE: run_transcribe,
    TaskKind.EXTRACT: run_extract,
}

__all__ = ["STAGES", "Stage", "StageResult"]
