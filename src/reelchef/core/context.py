"""Execution context: the shared clients every stage and worker runs against."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from reelchef.core.config import ReelChefConfig
from reelchef.core.constants import AUDIO_SUFFIX, INFO_SUFFIX, MEDIA_SUFFIX
from reelchef.db.repository import Repository
from reelchef.jobs.store import TaskStore
from reelchef.pipeline.prompt import load_template
from reelchef.providers.base import CompletionAdapter, TranscriberProvider
from reelchef.providers.completion import get_completion_adapter
from reelchef.providers.whisper import WhisperTranscriber

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionContext:
    config: ReelChefConfig
    repo: Repository
    tasks: TaskStore
    http: httpx.AsyncClient
    transcriber: TranscriberProvider
    completion: CompletionAdapter
    prompt_template: str

    def video_path(self, source_id: str) -> Path:
        return self.config.reel_dir / f"{source_id}{MEDIA_SUFFIX}"

    def info_path(self, source_id: str) -> Path:
        return self.config.reel_dir / f"{source_id}{INFO_SUFFIX}"

    def audio_path(self, source_id: str) -> Path:
        return self.config.reel_dir / f"{source_id}{AUDIO_SUFFIX}"

    async def aclose(self) -> None:
        await self.http.aclose()
        self.repo.close()


def build_context(config: ReelChefConfig, http: httpx.AsyncClient | None = None) -> ExecutionContext:
    """Open the store and build the service clients.

    Configuration problems (unknown completion protocol, unreadable prompt
    template) raise here, before any task is leased.
    """
    prompt_template = load_template(config.prompt_template_path)
    http = http or httpx.AsyncClient(timeout=config.http_timeout)
    completion = get_completion_adapter(config, http)
    transcriber = WhisperTranscriber(config, http)

    config.reel_dir.mkdir(parents=True, exist_ok=True)
    repo = Repository(config.db_path)
    logger.debug("Context ready: db=%s reels=%s", config.db_path, config.reel_dir)
    return ExecutionContext(
        config=config,
        repo=repo,
        tasks=TaskStore(repo.conn),
        http=http,
        transcriber=transcriber,
        completion=completion,
        prompt_template=prompt_template,
    )
