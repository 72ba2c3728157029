"""SQLite-backed task queue.

The ``tasks`` table is the queue. A partial unique index allows one live
(pending or running) row per ``uniq_key``; that index is the only
coordination primitive between submitters and workers.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta

from reelchef.core.exceptions import StoreError
from reelchef.jobs.tasks import DuplicateSkipped, TaskKind, TaskRecord, TaskSpec, TaskState
from reelchef.utils.timeutil import format_ts, utc_now

logger = logging.getLogger(__name__)


def _task_from_row(row: sqlite3.Row) -> TaskRecord:
    return TaskRecord(
        id=row["id"],
        kind=row["kind"],
        payload=json.loads(row["payload_json"]),
        uniq_key=row["uniq_key"],
        state=row["state"],
        attempts=row["attempts"],
        scheduled_at=row["scheduled_at"],
        error_message=row["error_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class TaskStore:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # --- Enqueue ---

    def enqueue(
        self,
        kind: TaskKind,
        payload: dict,
        uniq_key: str,
        *,
        run_at: datetime | None = None,
    ) -> int | DuplicateSkipped:
        """Insert a pending task, or return DuplicateSkipped if one is live."""
        now = utc_now()
        try:
            cur = self.conn.execute(
                """INSERT INTO tasks (kind, payload_json, uniq_key, state, attempts,
                   scheduled_at, created_at, updated_at)
                   VALUES (?, ?, ?, ?, 0, ?, ?, ?)""",
                (
                    TaskKind(kind).value, json.dumps(payload), uniq_key,
                    TaskState.PENDING.value, format_ts(run_at or now),
                    format_ts(now), format_ts(now),
                ),
            )
            self.conn.commit()
        except sqlite3.IntegrityError:
            self.conn.rollback()
            logger.debug("Live task exists for %s, skipping", uniq_key)
            return DuplicateSkipped(uniq_key)
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to enqueue {uniq_key}: {e}") from e
        return cur.lastrowid

    def enqueue_spec(self, spec: TaskSpec) -> int | DuplicateSkipped:
        return self.enqueue(spec.kind, spec.payload.model_dump(), spec.uniq_key)

    # --- Lease ---

    def lease_next(self, now: datetime | None = None) -> TaskRecord | None:
        """Claim the earliest eligible pending task, FIFO among equal times.

        BEGIN IMMEDIATE takes the write lock before the read, so no other
        connection can claim the same row in between.
        """
        stamp = format_ts(now or utc_now())
        try:
            self.conn.execute("BEGIN IMMEDIATE")
            row = self.conn.execute(
                """SELECT id FROM tasks
                   WHERE state = ? AND scheduled_at <= ?
                   ORDER BY scheduled_at, id
                   LIMIT 1""",
                (TaskState.PENDING.value, stamp),
            ).fetchone()
            if row is None:
                self.conn.commit()
                return None
            self.conn.execute(
                "UPDATE tasks SET state = ?, updated_at = ? WHERE id = ? AND state = ?",
                (TaskState.RUNNING.value, stamp, row["id"], TaskState.PENDING.value),
            )
            leased = self.conn.execute(
                "SELECT * FROM tasks WHERE id = ?", (row["id"],)
            ).fetchone()
            self.conn.commit()
        except sqlite3.Error as e:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise StoreError(f"Failed to lease task: {e}") from e
        return _task_from_row(leased)

    # --- Transitions ---

    def complete(self, task_id: int) -> None:
        self._transition(task_id, TaskState.DONE)

    def retry(
        self,
        task_id: int,
        delay_seconds: float,
        error: str | None = None,
        now: datetime | None = None,
    ) -> datetime:
        """Return the task to pending after a delay. Returns the new run time."""
        current = now or utc_now()
        run_at = current + timedelta(seconds=delay_seconds)
        try:
            self.conn.execute(
                """UPDATE tasks
                   SET state = ?, attempts = attempts + 1, scheduled_at = ?,
                       error_message = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    TaskState.PENDING.value, format_ts(run_at), error,
                    format_ts(current), task_id,
                ),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to reschedule task {task_id}: {e}") from e
        return run_at

    def fail(self, task_id: int, error: str) -> None:
        """Terminal failure. The failed attempt is counted; the error is kept."""
        self._transition(task_id, TaskState.FAILED, error)

    def _transition(self, task_id: int, state: TaskState, error: str | None = None) -> None:
        try:
            if error is None:
                self.conn.execute(
                    "UPDATE tasks SET state = ?, updated_at = ? WHERE id = ?",
                    (state.value, format_ts(utc_now()), task_id),
                )
            else:
                self.conn.execute(
                    """UPDATE tasks
                       SET state = ?, attempts = attempts + 1, error_message = ?, updated_at = ?
                       WHERE id = ?""",
                    (state.value, error, format_ts(utc_now()), task_id),
                )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to mark task {task_id} {state.value}: {e}") from e

    # --- Maintenance ---

    def requeue_running(self) -> int:
        """Return tasks left running by a dead process to pending."""
        now = format_ts(utc_now())
        try:
            cur = self.conn.execute(
                "UPDATE tasks SET state = ?, updated_at = ? WHERE state = ?",
                (TaskState.PENDING.value, now, TaskState.RUNNING.value),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to requeue running tasks: {e}") from e
        return cur.rowcount

    def purge_finished(self, older_than: datetime) -> int:
        """Delete done tasks last updated before ``older_than``."""
        try:
            cur = self.conn.execute(
                "DELETE FROM tasks WHERE state = ? AND updated_at < ?",
                (TaskState.DONE.value, format_ts(older_than)),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to purge tasks: {e}") from e
        return cur.rowcount

    # --- Queries ---

    def get(self, task_id: int) -> TaskRecord | None:
        row = self.conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _task_from_row(row) if row else None

    def list_tasks(self, state: TaskState | None = None, limit: int = 100) -> list[TaskRecord]:
        if state is not None:
            rows = self.conn.execute(
                "SELECT * FROM tasks WHERE state = ? ORDER BY id DESC LIMIT ?",
                (TaskState(state).value, limit),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM tasks ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [_task_from_row(r) for r in rows]

    def counts(self) -> dict[str, int]:
        rows = self.conn.execute(
            "SELECT state, COUNT(*) AS cnt FROM tasks GROUP BY state"
        ).fetchall()
        return {r["state"]: r["cnt"] for r in rows}
