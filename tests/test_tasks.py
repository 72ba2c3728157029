"""Tests for task kinds, source id parsing, uniqueness keys and backoff."""

from __future__ import annotations

import pytest

from reelchef.core.config import ReelChefConfig
from reelchef.core.exceptions import InvalidInputError
from reelchef.jobs.tasks import (
    FetchPayload,
    TaskKind,
    TaskRecord,
    TaskSpec,
    backoff,
    max_retries,
    parse_source_id,
    uniqueness_key,
)
from reelchef.utils.timeutil import format_ts, utc_now


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://example.com/reel/ABC123/", "ABC123"),
        ("https://www.instagram.com/reel/C1d-E_f2/", "C1d-E_f2"),
        ("https://www.instagram.com/reels/XyZ/?igsh=abc", "XyZ"),
        ("  https://www.instagram.com/reel/abc  ", "abc"),
    ],
)
def test_parse_source_id(url: str, expected: str) -> None:
    assert parse_source_id(url) == expected


@pytest.mark.parametrize(
    "url",
    ["", "not a url", "https://www.instagram.com/p/ABC123/", "ftp://example.com/reel/ABC/"],
)
def test_parse_source_id_rejects(url: str) -> None:
    with pytest.raises(InvalidInputError) as exc:
        parse_source_id(url)
    assert exc.value.retryable is False


def test_custom_source_pattern() -> None:
    assert parse_source_id("https://v.example/watch/42", r"^https://v\.example/watch/(\d+)$") == "42"


def test_fetch_spec_uses_source_id_for_key() -> None:
    spec = TaskSpec.fetch("https://example.com/reel/ABC123/")
    assert spec.kind is TaskKind.FETCH
    assert spec.uniq_key == "fetch:ABC123"
    assert spec.payload == FetchPayload(source_url="https://example.com/reel/ABC123/", source_id="ABC123")


def test_stage_specs_key_on_video_id() -> None:
    assert TaskSpec.transcribe(7).uniq_key == "transcribe:7"
    assert TaskSpec.extract(7).uniq_key == "extract:7"
    assert uniqueness_key(TaskKind.EXTRACT, 7) == "extract:7"


def test_backoff_doubles_from_sixty_seconds() -> None:
    assert [backoff(a) for a in range(4)] == [60, 120, 240, 480]
    assert backoff(2, base_seconds=5) == 20


def test_max_retries_per_kind() -> None:
    config = ReelChefConfig(_env_file=None)
    assert max_retries(TaskKind.FETCH, config) == 3
    assert max_retries(TaskKind.TRANSCRIBE, config) == 3
    assert max_retries(TaskKind.EXTRACT, config) == 0


def test_decode_payload_rejects_bad_payload() -> None:
    now = format_ts(utc_now())
    task = TaskRecord(
        id=1, kind="transcribe", payload={"video": "x"}, uniq_key="transcribe:x",
        state="running", attempts=0, scheduled_at=now, created_at=now, updated_at=now,
    )
    with pytest.raises(InvalidInputError):
        task.decode_payload()
