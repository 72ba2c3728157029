"""Downloader and transcoder subprocess helpers."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from reelchef.core.constants import (
    AUDIO_BITRATE,
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE,
    DOWNLOAD_INFO_NAME,
    DOWNLOAD_MEDIA_NAME,
)
from reelchef.core.exceptions import ExternalToolError

logger = logging.getLogger(__name__)

_STDERR_TAIL = 2000


async def run_tool(
    cmd: list[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> str:
    """Run a subprocess to completion and return its stdout.

    Raises ExternalToolError on a missing binary, a timeout or a non-zero
    exit. The error carries the tail of stderr.
    """
    cmd_str = " ".join(cmd)
    logger.debug("Running: %s", cmd_str)
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ExternalToolError(f"{cmd[0]} not found. Is it installed and on PATH?", cmd=cmd_str) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise ExternalToolError(f"{cmd[0]} timed out after {timeout:.0f}s", cmd=cmd_str) from e

    if proc.returncode != 0:
        err = stderr.decode(errors="replace").strip()[-_STDERR_TAIL:]
        raise ExternalToolError(
            f"{cmd[0]} failed (exit {proc.returncode}): {err}",
            cmd=cmd_str,
            returncode=proc.returncode,
            stderr=err,
        )
    return stdout.decode(errors="replace")


async def download_media(
    yt_dlp: str,
    url: str,
    media_path: Path,
    info_path: Path,
    *,
    timeout: float | None = None,
) -> None:
    """Download a reel and its info sidecar into place.

    The downloader writes into a scratch directory next to the targets, so
    the final ``os.replace`` never crosses a filesystem boundary.
    """
    media_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix=".download-", dir=media_path.parent) as tmp:
        scratch = Path(tmp)
        cmd = [
            yt_dlp,
            "--no-playlist",
            "--merge-output-format", "mp4",
            "--write-info-json",
            "-o", "reel.%(ext)s",
            url,
        ]
        await run_tool(cmd, cwd=scratch, timeout=timeout)

        tmp_media = scratch / DOWNLOAD_MEDIA_NAME
        tmp_info = scratch / DOWNLOAD_INFO_NAME
        missing = [p.name for p in (tmp_media, tmp_info) if not p.exists()]
        if missing:
            raise ExternalToolError(
                f"{yt_dlp} finished but did not write {', '.join(missing)}",
                cmd=" ".join(cmd),
            )

        os.replace(tmp_info, info_path)
        os.replace(tmp_media, media_path)
    logger.info("Downloaded %s -> %s", url, media_path.name)


async def transcode_audio(
    ffmpeg: str,
    video_path: Path,
    audio_path: Path,
    *,
    timeout: float | None = None,
) -> None:
    """Extract a mono 16 kHz mp3 from a video, written atomically."""
    tmp_path = audio_path.with_name(audio_path.name.replace(".mp3", ".tmp.mp3"))
    cmd = [
        ffmpeg, "-y",
        "-i", str(video_path),
        "-vn",
        "-ac", str(AUDIO_CHANNELS),
        "-ar", str(AUDIO_SAMPLE_RATE),
        "-b:a", AUDIO_BITRATE,
        str(tmp_path),
    ]
    try:
        await run_tool(cmd, timeout=timeout)
        if not tmp_path.exists():
            raise ExternalToolError(f"{ffmpeg} finished but wrote no audio", cmd=" ".join(cmd))
        os.replace(tmp_path, audio_path)
    finally:
        tmp_path.unlink(missing_ok=True)
    logger.info("Transcoded %s -> %s", video_path.name, audio_path.name)
