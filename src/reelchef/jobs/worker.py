"""Asyncio worker pool.

Each of ``workers`` loops leases one task at a time, runs its stage, enqueues
whatever the stage asked for, then marks the task done. A failing stage turns
into a ``retry`` or ``fail`` transition; it never ends the loop.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Callable

from reelchef.core.context import ExecutionContext
from reelchef.core.exceptions import ReelChefError, StoreError
from reelchef.jobs.tasks import DuplicateSkipped, TaskKind, TaskRecord, backoff, max_retries
from reelchef.pipeline import STAGES, Stage

logger = logging.getLogger(__name__)


def is_retryable(exc: BaseException) -> bool:
    # Unexpected exceptions get the benefit of the doubt
    if isinstance(exc, ReelChefError):
        return exc.retryable
    return True


class WorkerPool:
    def __init__(
        self,
        context: ExecutionContext,
        workers: int | None = None,
        stages: dict[TaskKind, Stage] | None = None,
    ):
        self.ctx = context
        self.workers = workers or context.config.workers
        self.stages = stages if stages is not None else STAGES
        self._stop = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Stop leasing. Tasks already running finish normally."""
        if not self._stop.is_set():
            logger.info("Stopping workers after in-flight tasks finish")
        self._stop.set()

    async def run(self) -> None:
        requeued = self.ctx.tasks.requeue_running()
        if requeued:
            logger.warning("Requeued %d task(s) left running by a previous process", requeued)

        loop = asyncio.get_running_loop()
        installed = self._install_signal_handlers(loop)
        logger.info("Starting %d worker(s)", self.workers)
        try:
            await asyncio.gather(*(self._work(i) for i in range(self.workers)))
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
        logger.info("All workers stopped")

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[signal.Signals]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not the main thread, or a platform without loop signal support
                logger.debug("Cannot install handler for %s", sig.name)
            else:
                installed.append(sig)
        return installed

    async def _work(self, index: int) -> None:
        logger.debug("Worker %d started", index)
        while not self._stop.is_set():
            try:
                processed = await self.run_once()
            except Exception:
                logger.exception("Worker %d could not process a task", index)
                processed = False
            if not processed:
                await self._idle()
        logger.debug("Worker %d exited", index)

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.ctx.config.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def run_once(self) -> bool:
        """Lease and run at most one task. Returns False if nothing was eligible."""
        task = self.ctx.tasks.lease_next()
        if task is None:
            return False
        await self.run_task(task)
        return True

    async def run_task(self, task: TaskRecord) -> None:
        logger.info(
            "Task %d %s (%s) attempt %d started", task.id, task.kind.value, task.uniq_key, task.attempts
        )
        try:
            stage = self.stages[task.kind]
            payload = task.decode_payload()
            result = await stage(self.ctx, payload)
            for spec in result.next_tasks:
                outcome = self.ctx.tasks.enqueue_spec(spec)
                if isinstance(outcome, DuplicateSkipped):
                    logger.info("Follow-up %s already queued", spec.uniq_key)
                else:
                    logger.info("Queued follow-up task %d (%s)", outcome, spec.uniq_key)
        except Exception as e:
            self._handle_failure(task, e)
            return

        self.ctx.tasks.complete(task.id)
        logger.info("Task %d %s (%s) done", task.id, task.kind.value, task.uniq_key)

    def _handle_failure(self, task: TaskRecord, exc: Exception) -> None:
        message = f"{type(exc).__name__}: {exc}"
        ceiling = max_retries(task.kind, self.ctx.config)

        if is_retryable(exc) and task.attempts < ceiling:
            delay = backoff(task.attempts, self.ctx.config.backoff_base_seconds)
            if not self._record(task, lambda: self.ctx.tasks.retry(task.id, delay, message)):
                return
            logger.warning(
                "Task %d %s (%s) attempt %d failed, retrying in %ds: %s",
                task.id, task.kind.value, task.uniq_key, task.attempts, delay, message,
            )
            return

        if not self._record(task, lambda: self.ctx.tasks.fail(task.id, message)):
            return
        reason = "retries exhausted" if is_retryable(exc) else "not retryable"
        logger.error(
            "Task %d %s (%s) attempt %d failed (%s): %s",
            task.id, task.kind.value, task.uniq_key, task.attempts, reason, message,
        )

    def _record(self, task: TaskRecord, transition: Callable[[], object]) -> bool:
        try:
            transition()
        except StoreError:
            # The task stays running until the next run() requeues it
            logger.exception("Could not record the failure of task %d (%s)", task.id, task.uniq_key)
            return False
        return True
