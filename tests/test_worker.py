"""Tests for the worker pool: dispatch, chaining, retry/fail classification."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from reelchef.core.exceptions import (
    ExternalToolError,
    RecordNotFoundError,
    ResponseShapeError,
    StoreError,
    UpstreamServiceError,
)
from reelchef.jobs.tasks import TaskKind, TaskSpec, TaskState
from reelchef.jobs.worker import WorkerPool, is_retryable
from reelchef.pipeline import STAGES, StageResult
from reelchef.utils.timeutil import format_ts, utc_now

URL = "https://example.com/reel/ABC123/"


def _make_due(ctx) -> None:
    """Pull every pending task's schedule into the past."""
    past = format_ts(utc_now() - timedelta(seconds=1))
    ctx.repo.conn.execute("UPDATE tasks SET scheduled_at = ? WHERE state = 'pending'", (past,))
    ctx.repo.conn.commit()


async def _fake_tools(cmd, *, cwd=None, timeout=None):
    if cwd is not None:
        (cwd / "reel.mp4").write_bytes(b"\x00" * 64)
        (cwd / "reel.info.json").write_text(json.dumps({"description": "Soup with water"}))
    else:
        Path(cmd[-1]).write_bytes(b"ID3")
    return ""


def test_stage_table_covers_every_kind() -> None:
    assert set(STAGES) == set(TaskKind)


def test_empty_queue(ctx) -> None:
    assert asyncio.run(WorkerPool(ctx).run_once()) is False


def test_full_pipeline_chains_three_stages(ctx, completion) -> None:
    ctx.tasks.enqueue_spec(TaskSpec.fetch(URL))
    pool = WorkerPool(ctx)

    with patch("reelchef.pipeline.tools.run_tool", _fake_tools):
        processed = [asyncio.run(pool.run_once()) for _ in range(4)]

    assert processed == [True, True, True, False]
    tasks = ctx.tasks.list_tasks()
    assert sorted(t.kind.value for t in tasks) == ["extract", "fetch", "transcribe"]
    assert all(t.state is TaskState.DONE for t in tasks)

    (video,) = ctx.repo.list_videos()
    assert video.transcript.text == "Boil the water."
    assert [r.title for r in ctx.repo.get_recipes(video_id=video.id)] == ["Soup"]
    assert "Soup with water" in completion.prompts[0]


def test_downloader_failure_retries_then_fails(ctx) -> None:
    task_id = ctx.tasks.enqueue_spec(TaskSpec.fetch(URL))
    pool = WorkerPool(ctx)
    failing = AsyncMock(side_effect=ExternalToolError("yt-dlp failed (exit 1)", returncode=1))

    with patch("reelchef.pipeline.tools.run_tool", failing):
        before = utc_now()
        assert asyncio.run(pool.run_once()) is True

        task = ctx.tasks.get(task_id)
        assert task.state is TaskState.PENDING
        assert task.attempts == 1
        delay = (task.scheduled_at - before).total_seconds()
        assert 59 <= delay <= 62
        assert "exit 1" in task.error_message
        # Not eligible until the backoff has passed
        assert asyncio.run(pool.run_once()) is False

        for expected_attempts in (2, 3):
            _make_due(ctx)
            asyncio.run(pool.run_once())
            task = ctx.tasks.get(task_id)
            assert task.state is TaskState.PENDING
            assert task.attempts == expected_attempts

        _make_due(ctx)
        asyncio.run(pool.run_once())

    task = ctx.tasks.get(task_id)
    assert task.state is TaskState.FAILED
    assert failing.await_count == 4
    _make_due(ctx)
    assert ctx.tasks.lease_next(utc_now() + timedelta(days=365)) is None


def test_backoff_grows_per_attempt(ctx) -> None:
    task_id = ctx.tasks.enqueue_spec(TaskSpec.transcribe(1))

    async def flaky(ctx_, payload):
        raise UpstreamServiceError("HTTP 503", status_code=503)

    pool = WorkerPool(ctx, stages={**STAGES, TaskKind.TRANSCRIBE: flaky})
    delays = []
    for _ in range(3):
        _make_due(ctx)
        before = utc_now()
        asyncio.run(pool.run_once())
        delays.append(round((ctx.tasks.get(task_id).scheduled_at - before).total_seconds() / 60))
    assert delays == [1, 2, 4]


def test_fatal_errors_fail_immediately(ctx) -> None:
    task_id = ctx.tasks.enqueue_spec(TaskSpec.transcribe(999))
    asyncio.run(WorkerPool(ctx).run_once())

    task = ctx.tasks.get(task_id)
    assert task.state is TaskState.FAILED
    assert task.error_message.startswith("RecordNotFoundError")


def test_extract_failures_are_not_retried(ctx, completion) -> None:
    video = ctx.repo.insert_video("ABC123", URL, {"description": "soup"})
    task_id = ctx.tasks.enqueue_spec(TaskSpec.extract(video.id))
    completion.error = UpstreamServiceError("HTTP 500", status_code=500)

    asyncio.run(WorkerPool(ctx).run_once())
    assert ctx.tasks.get(task_id).state is TaskState.FAILED


def test_bad_payload_fails_task(ctx) -> None:
    task_id = ctx.tasks.enqueue(TaskKind.EXTRACT, {"video": "nope"}, "extract:nope")
    asyncio.run(WorkerPool(ctx).run_once())
    task = ctx.tasks.get(task_id)
    assert task.state is TaskState.FAILED
    assert task.error_message.startswith("InvalidInputError")


def test_one_bad_task_does_not_stop_the_next(ctx) -> None:
    bad = ctx.tasks.enqueue_spec(TaskSpec.transcribe(1))
    good = ctx.tasks.enqueue_spec(TaskSpec.transcribe(2))

    async def stage(ctx_, payload):
        if payload.video_id == 1:
            raise KeyError("surprise")
        return StageResult()

    pool = WorkerPool(ctx, stages={**STAGES, TaskKind.TRANSCRIBE: stage})
    asyncio.run(pool.run_once())
    asyncio.run(pool.run_once())

    # Unexpected exceptions are retried
    assert ctx.tasks.get(bad).state is TaskState.PENDING
    assert ctx.tasks.get(good).state is TaskState.DONE


def test_duplicate_follow_up_is_skipped(ctx) -> None:
    ctx.tasks.enqueue_spec(TaskSpec.extract(5))
    ctx.tasks.enqueue_spec(TaskSpec.transcribe(5))

    async def stage(ctx_, payload):
        return StageResult(next_tasks=[TaskSpec.extract(payload.video_id)])

    pool = WorkerPool(ctx, stages={**STAGES, TaskKind.TRANSCRIBE: stage})
    # Keep extract:5 pending but out of reach of the lease
    ctx.repo.conn.execute("UPDATE tasks SET scheduled_at = ? WHERE uniq_key = 'extract:5'",
                          (format_ts(utc_now() + timedelta(hours=1)),))
    ctx.repo.conn.commit()
    asyncio.run(pool.run_once())

    assert ctx.tasks.counts() == {"pending": 1, "done": 1}


def test_run_stops_when_asked_and_requeues_stale(ctx) -> None:
    stale = ctx.tasks.enqueue_spec(TaskSpec.transcribe(1))
    ctx.tasks.lease_next(utc_now() + timedelta(seconds=1))

    async def main():
        pool = WorkerPool(ctx, workers=3)

        async def stage(ctx_, payload):
            pool.stop()
            return StageResult()

        pool.stages = {**STAGES, TaskKind.TRANSCRIBE: stage}
        await asyncio.wait_for(pool.run(), timeout=5)
        return pool

    pool = asyncio.run(main())
    assert pool.stopping
    assert ctx.tasks.get(stale).state is TaskState.DONE


def test_fetch_rerun_queues_lost_follow_up(ctx) -> None:
    task_id = ctx.tasks.enqueue_spec(TaskSpec.fetch(URL))
    pool = WorkerPool(ctx)

    with patch("reelchef.pipeline.tools.run_tool", _fake_tools):
        # The video is stored but its transcribe task never makes it into the queue
        with patch.object(ctx.tasks, "enqueue_spec", side_effect=StoreError("disk I/O error")):
            asyncio.run(pool.run_once())
        assert ctx.tasks.get(task_id).state is TaskState.PENDING
        assert len(ctx.repo.list_videos()) == 1

        _make_due(ctx)
        asyncio.run(pool.run_once())

    assert ctx.tasks.get(task_id).state is TaskState.DONE
    (video,) = ctx.repo.list_videos()
    (follow_up,) = [t for t in ctx.tasks.list_tasks() if t.kind is TaskKind.TRANSCRIBE]
    assert follow_up.uniq_key == f"transcribe:{video.id}"
    assert follow_up.state is TaskState.PENDING


def test_store_failure_while_recording_leaves_task_for_requeue(ctx) -> None:
    task_id = ctx.tasks.enqueue_spec(TaskSpec.transcribe(1))

    async def flaky(ctx_, payload):
        raise UpstreamServiceError("HTTP 503", status_code=503)

    pool = WorkerPool(ctx, stages={**STAGES, TaskKind.TRANSCRIBE: flaky})
    with patch.object(ctx.tasks, "retry", side_effect=StoreError("database is locked")):
        assert asyncio.run(pool.run_once()) is True

    assert ctx.tasks.get(task_id).state is TaskState.RUNNING
    assert ctx.tasks.requeue_running() == 1
    assert ctx.tasks.get(task_id).state is TaskState.PENDING


def test_retryable_classification() -> None:
    assert is_retryable(ExternalToolError("x"))
    assert is_retryable(UpstreamServiceError("x"))
    assert is_retryable(RuntimeError("x"))
    assert is_retryable(ResponseShapeError("x", retryable=True))
    assert not is_retryable(ResponseShapeError("x"))
    assert not is_retryable(RecordNotFoundError("x"))


@pytest.mark.parametrize("workers", [1, 4])
def test_worker_count(ctx, workers: int) -> None:
    assert WorkerPool(ctx, workers=workers).workers == workers
    assert WorkerPool(ctx).workers == ctx.config.workers
