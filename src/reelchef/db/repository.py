"""CRUD operations for videos and recipes."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from reelchef.core.exceptions import RecordNotFoundError, StoreError
from reelchef.db.connection import get_connection
from reelchef.db.models import RecipeRecord, Transcript, VideoRecord
from reelchef.db.schema import migrate
from reelchef.providers.normalize import ExtractedRecipe
from reelchef.utils.timeutil import format_ts, utc_now


class DuplicateVideoError(StoreError):
    """A video with this source id already exists."""

    retryable = False


def _video_from_row(row: sqlite3.Row) -> VideoRecord:
    transcript = row["transcript_json"]
    return VideoRecord(
        id=row["id"],
        source_id=row["source_id"],
        source_url=row["source_url"],
        info=json.loads(row["info_json"] or "{}"),
        transcript=Transcript.model_validate_json(transcript) if transcript else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _recipe_from_row(row: sqlite3.Row) -> RecipeRecord:
    return RecipeRecord(
        id=row["id"],
        video_id=row["video_id"],
        title=row["title"],
        ingredients=json.loads(row["ingredients_json"]),
        instructions=json.loads(row["instructions_json"]),
        generated_at=row["generated_at"],
    )


class Repository:
    def __init__(self, db_path: Path | None = None):
        self.conn = get_connection(db_path)
        migrate(self.conn)

    def close(self) -> None:
        self.conn.close()

    # --- Videos ---

    def insert_video(self, source_id: str, source_url: str, info: dict) -> VideoRecord:
        now = format_ts(utc_now())
        try:
            cur = self.conn.execute(
                """INSERT INTO videos (source_id, source_url, info_json, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (source_id, source_url, json.dumps(info), now, now),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DuplicateVideoError(f"Video already exists: {source_id}") from e
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to insert video {source_id}: {e}") from e
        return self.get_video(cur.lastrowid)

    def get_video(self, video_id: int) -> VideoRecord:
        row = self.conn.execute(
            "SELECT * FROM videos WHERE id = ?", (video_id,)
        ).fetchone()
        if not row:
            raise RecordNotFoundError(f"Video not found: {video_id}")
        return _video_from_row(row)

    def get_video_by_source_id(self, source_id: str) -> VideoRecord | None:
        row = self.conn.execute(
            "SELECT * FROM videos WHERE source_id = ?", (source_id,)
        ).fetchone()
        return _video_from_row(row) if row else None

    def list_videos(self, limit: int = 100) -> list[VideoRecord]:
        rows = self.conn.execute(
            "SELECT * FROM videos ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [_video_from_row(r) for r in rows]

    def set_transcript(self, video_id: int, transcript: Transcript) -> None:
        """Attach a transcript, replacing any previous one."""
        try:
            cur = self.conn.execute(
                "UPDATE videos SET transcript_json = ?, updated_at = ? WHERE id = ?",
                (transcript.model_dump_json(), format_ts(utc_now()), video_id),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to save transcript for video {video_id}: {e}") from e
        if cur.rowcount == 0:
            raise RecordNotFoundError(f"Video not found: {video_id}")

    # --- Recipes ---

    def save_recipes(
        self,
        video_id: int,
        recipes: list[ExtractedRecipe],
        *,
        replace: bool = True,
        generated_at: datetime | None = None,
    ) -> list[int]:
        """Store extracted recipes for a video in one transaction.

        With ``replace`` the video's earlier recipes are removed first, so
        re-running extraction does not accumulate duplicates.
        """
        stamp = format_ts(generated_at or utc_now())
        ids: list[int] = []
        try:
            if replace:
                self.conn.execute("DELETE FROM recipes WHERE video_id = ?", (video_id,))
            for recipe in recipes:
                cur = self.conn.execute(
                    """INSERT INTO recipes (video_id, title, ingredients_json, instructions_json, generated_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (
                        video_id, recipe.title,
                        json.dumps(recipe.ingredients), json.dumps(recipe.instructions),
                        stamp,
                    ),
                )
                ids.append(cur.lastrowid)
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to save recipes for video {video_id}: {e}") from e
        return ids

    def get_recipes(self, video_id: int | None = None, limit: int = 100) -> list[RecipeRecord]:
        if video_id is not None:
            rows = self.conn.execute(
                "SELECT * FROM recipes WHERE video_id = ? ORDER BY id LIMIT ?",
                (video_id, limit),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM recipes ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [_recipe_from_row(r) for r in rows]
