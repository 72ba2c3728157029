"""Stage result type shared by all pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable

from pydantic import BaseModel

from reelchef.jobs.tasks import TaskSpec

if TYPE_CHECKING:
    from reelchef.core.context import ExecutionContext


@dataclass
class StageResult:
    """What a stage hands back to the worker: follow-up tasks to enqueue."""

    next_tasks: list[TaskSpec] = field(default_factory=list)


Stage = Callable[["ExecutionContext", BaseModel], Awaitable[StageResult]]
