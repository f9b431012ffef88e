"""
Task Registry
-------------

Bookkeeping for the asyncio tasks the lifecycle subsystem spawns: the serve
loop of each coordinator run and the waiter on its stop source.

Features:
- Register tasks with metadata (category, description, origin)
- Track completion state: cancelled, failed with an exception, returned
- Introspection API used by the demo app and by tests
"""

from __future__ import annotations

import asyncio
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from graceful_listener.utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.TASK)

MAX_FINISHED_RECORDS = 256


# ---------------------------------------------------------------------------
# TASK CATEGORY ENUM
# ---------------------------------------------------------------------------

class TaskCategory(Enum):
    """Logical grouping of asynchronous tasks."""
    SERVE = auto()     # transport serve loop
    SIGNAL = auto()    # waiter on a cancellation source
    GENERAL = auto()


# ---------------------------------------------------------------------------
# TASK METADATA
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskInfo:
    """Immutable metadata captured at task creation time."""
    id: int
    category: TaskCategory
    description: str
    created_at: str  # ISO UTC string
    origin_stack: str  # short stack trace where create_tracked_task was called


@dataclass
class TaskRecord:
    """Internal structure tracking task state."""
    task: asyncio.Task
    info: TaskInfo
    cancelled: bool = False
    finished_with_error: Optional[BaseException] = None
    finished_return: Optional[Any] = None
    finished_at: Optional[str] = None


# ---------------------------------------------------------------------------
# TASK REGISTRY SINGLETON
# ---------------------------------------------------------------------------

class TaskRegistry:
    """
    Process-wide registry of tracked asyncio tasks.

    Records are kept after completion so failures stay inspectable, up to
    ``max_finished`` of them; older finished records are pruned first.
    """

    _instance: Optional["TaskRegistry"] = None

    def __init__(self, max_finished: int = MAX_FINISHED_RECORDS) -> None:
        self._records: Dict[asyncio.Task, TaskRecord] = {}
        self._next_id: int = 1
        self.max_finished = max_finished

    @classmethod
    def instance(cls) -> "TaskRegistry":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register(self, task: asyncio.Task, category: TaskCategory, description: str) -> int:
        """Register a new task with metadata."""
        task_id = self._next_id
        self._next_id += 1

        # Drop the last frame which will be inside this module
        origin_stack = "".join(traceback.format_stack(limit=8)[:-1])

        info = TaskInfo(
            id=task_id,
            category=category,
            description=description,
            created_at=datetime.now(timezone.utc).isoformat(),
            origin_stack=origin_stack,
        )
        self._records[task] = TaskRecord(task=task, info=info)

        log.debug(f"[Task {task_id}] Registered ({category.name}) - {description}")

        task.add_done_callback(self._on_task_done)
        return task_id

    def _on_task_done(self, task: asyncio.Task) -> None:
        record = self._records.get(task)
        if record is None:
            return

        record.finished_at = datetime.now(timezone.utc).isoformat()
        self._prune_finished()
        if task.cancelled():
            record.cancelled = True
            log.debug(f"[Task {record.info.id}] Cancelled")
            return

        exc = task.exception()
        if exc:
            record.finished_with_error = exc
            log.error(f"[Task {record.info.id}] FAILED: {exc}", task=record.info.description)
        else:
            record.finished_return = task.result()
            log.debug(f"[Task {record.info.id}] Completed successfully")

    def _prune_finished(self) -> None:
        finished = [t for t, r in self._records.items() if r.finished_at is not None]
        for task in finished[:max(0, len(finished) - self.max_finished)]:
            del self._records[task]

    # -----------------------------
    # Public API
    # -----------------------------

    def get(self, task: asyncio.Task) -> Optional[TaskRecord]:
        return self._records.get(task)

    def list_all(self) -> List[TaskRecord]:
        return list(self._records.values())

    def active(self) -> List[TaskRecord]:
        """Return only tasks that are still running."""
        return [r for r in self._records.values() if not r.task.done()]

    def failed(self) -> List[TaskRecord]:
        """Return tasks that ended with an exception."""
        return [r for r in self._records.values() if r.finished_with_error is not None]

    def cancelled(self) -> List[TaskRecord]:
        return [r for r in self._records.values() if r.cancelled]

    def summary(self) -> str:
        """Return human-readable summary for logs."""
        return (
            f"Tasks: total={len(self._records)}, running={len(self.active())}, "
            f"failed={len(self.failed())}, cancelled={len(self.cancelled())}"
        )


def create_tracked_task(
    coro,
    *,
    category: TaskCategory,
    description: str,
) -> asyncio.Task:
    """
    Create and register a task in a single call.
    """
    task = asyncio.get_running_loop().create_task(coro, name=description)
    TaskRegistry.instance().register(task=task, category=category, description=description)
    return task
