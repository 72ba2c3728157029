"""Configuration via environment variables, config.json, and .env files."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reelchef.core.constants import (
    BACKOFF_BASE_SECONDS,
    CONFIG_FILE_PATH,
    DEFAULT_COMPLETION_BASE_URL,
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_DB_PATH,
    DEFAULT_FFMPEG,
    DEFAULT_GENERATE_URL,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REEL_DIR,
    DEFAULT_SOURCE_URL_PATTERN,
    DEFAULT_TOOL_TIMEOUT,
    DEFAULT_WHISPER_LANGUAGE,
    DEFAULT_WHISPER_MODEL,
    DEFAULT_WHISPER_URL,
    DEFAULT_WORKERS,
    DEFAULT_YT_DLP,
    EXTRACT_MAX_RETRIES,
    FETCH_MAX_RETRIES,
    PROTOCOL_CHAT,
    RECIPE_POLICY_REPLACE,
    TRANSCRIBE_MAX_RETRIES,
)

# Keys that may be persisted in config.json
FILE_KEYS = (
    "reel_dir",
    "yt_dlp_path",
    "ffmpeg_path",
    "source_url_pattern",
    "whisper_url",
    "whisper_key",
    "whisper_model",
    "whisper_language",
    "completion_protocol",
    "completion_base_url",
    "completion_api_key",
    "completion_model",
    "generate_url",
    "prompt_template_path",
    "workers",
    "recipe_policy",
)


def _load_config_file() -> dict:
    """Read ~/.config/reelchef/config.json if it exists, return as dict."""
    if not CONFIG_FILE_PATH.exists():
        return {}
    try:
        return json.loads(CONFIG_FILE_PATH.read_text())
    except Exception:
        return {}


def save_config(data: dict) -> Path:
    """Write config dict to ~/.config/reelchef/config.json. Returns the path."""
    CONFIG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE_PATH.write_text(json.dumps(data, indent=2) + "\n")
    return CONFIG_FILE_PATH


class ReelChefConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_path: Path = Field(default=DEFAULT_DB_PATH)
    reel_dir: Path = Field(default=DEFAULT_REEL_DIR)

    # External tools
    yt_dlp_path: str = Field(default=DEFAULT_YT_DLP)
    ffmpeg_path: str = Field(default=DEFAULT_FFMPEG)
    source_url_pattern: str = Field(default=DEFAULT_SOURCE_URL_PATTERN)

    # Speech-to-text
    whisper_url: str = Field(default=DEFAULT_WHISPER_URL)
    whisper_key: str = Field(default="local")
    whisper_model: str = Field(default=DEFAULT_WHISPER_MODEL)
    whisper_language: str = Field(default=DEFAULT_WHISPER_LANGUAGE)

    # Completion
    # The tool-calling protocols are accepted here and refused when the adapter is built
    completion_protocol: Literal["chat", "generate", "chat-tools", "generate-tools"] = Field(
        default=PROTOCOL_CHAT
    )
    completion_base_url: str = Field(default=DEFAULT_COMPLETION_BASE_URL)
    completion_api_key: str = Field(default="ollama")
    completion_model: str = Field(default=DEFAULT_COMPLETION_MODEL)
    generate_url: str = Field(default=DEFAULT_GENERATE_URL)
    prompt_template_path: Path | None = Field(default=None)

    # Timeouts
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT)
    tool_timeout: float = Field(default=DEFAULT_TOOL_TIMEOUT)

    # Queue
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    backoff_base_seconds: int = Field(default=BACKOFF_BASE_SECONDS, ge=0)
    fetch_max_retries: int = Field(default=FETCH_MAX_RETRIES, ge=0)
    transcribe_max_retries: int = Field(default=TRANSCRIBE_MAX_RETRIES, ge=0)
    extract_max_retries: int = Field(default=EXTRACT_MAX_RETRIES, ge=0)

    # Recipes
    recipe_policy: Literal["replace", "append"] = Field(default=RECIPE_POLICY_REPLACE)


def get_config(db_path: Path | None = None) -> ReelChefConfig:
    """Create config with priority: env vars > config.json > defaults."""
    file_data = _load_config_file()

    # pydantic treats __init__ kwargs as highest priority, so only pass
    # config.json values whose env var is unset
    init_kwargs: dict = {}
    for key in FILE_KEYS:
        env_name = f"RECIPE_{key.upper()}"
        if key in file_data and env_name not in os.environ:
            init_kwargs[key] = file_data[key]

    config = ReelChefConfig(**init_kwargs)

    if db_path is not None:
        config.db_path = db_path
    return config
