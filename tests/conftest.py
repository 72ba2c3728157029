"""Shared fixtures: isolated config, store and a context with fake services."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import httpx
import pytest

from reelchef.core.config import ReelChefConfig
from reelchef.core.context import ExecutionContext
from reelchef.db.models import Transcript
from reelchef.db.repository import Repository
from reelchef.jobs.store import TaskStore
from reelchef.pipeline.prompt import load_template
from reelchef.providers.base import CompletionAdapter, TranscriberProvider

SOUP_JSON = '[{"title": "Soup", "ingredients": ["water"], "instructions": ["boil"]}]'


class FakeTranscriber(TranscriberProvider):
    def __init__(self, transcript: Transcript | None = None, error: Exception | None = None):
        self.transcript = transcript or Transcript(
            text="Boil the water.",
            segments=[{"id": 0, "start": 0.0, "end": 1.5, "text": "Boil the water."}],
        )
        self.error = error
        self.calls: list[Path] = []

    async def transcribe(self, audio_path: Path) -> Transcript:
        self.calls.append(audio_path)
        if self.error is not None:
            raise self.error
        return self.transcript


class FakeCompletion(CompletionAdapter):
    protocol = "fake"

    def __init__(self, response: str = SOUP_JSON, error: Exception | None = None):
        self.response = response
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's env vars and config.json out of every test."""
    for key in list(os.environ):
        if key.startswith("RECIPE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("reelchef.core.config.CONFIG_FILE_PATH", tmp_path / "config.json")


@pytest.fixture()
def config(tmp_path: Path) -> ReelChefConfig:
    return ReelChefConfig(
        _env_file=None,
        db_path=tmp_path / "test.db",
        reel_dir=tmp_path / "reels",
        poll_interval=0.01,
    )


@pytest.fixture()
def repo(config: ReelChefConfig):
    repo = Repository(config.db_path)
    yield repo
    repo.close()


@pytest.fixture()
def store(repo: Repository) -> TaskStore:
    return TaskStore(repo.conn)


@pytest.fixture()
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture()
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture()
def ctx(
    config: ReelChefConfig,
    repo: Repository,
    store: TaskStore,
    transcriber: FakeTranscriber,
    completion: FakeCompletion,
):
    config.reel_dir.mkdir(parents=True, exist_ok=True)
    http = httpx.AsyncClient()
    yield ExecutionContext(
        config=config,
        repo=repo,
        tasks=store,
        http=http,
        transcriber=transcriber,
        completion=completion,
        prompt_template=load_template(None),
    )
    asyncio.run(http.aclose())
