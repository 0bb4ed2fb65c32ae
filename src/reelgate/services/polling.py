"""Submit-then-poll routine shared by task-based generative APIs."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    """Status of a remote generation task."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


@dataclass
class TaskResult:
    """Result of a polled generation task."""

    task_id: str
    status: TaskStatus
    output_url: Optional[str] = None
    preview_url: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PollSettings:
    """How often and how long to poll a task."""

    interval_seconds: float = 2.0
    max_polls: int = 150

    @property
    def max_wait_seconds(self) -> float:
        return self.interval_seconds * self.max_polls


SubmitFn = Callable[[], Awaitable[str]]
CheckFn = Callable[[str], Awaitable[TaskResult]]


async def poll_task(
    submit: SubmitFn,
    check: CheckFn,
    settings: PollSettings = PollSettings(),
    label: str = "task",
) -> TaskResult:
    """Submit a task, then poll it until it reaches a terminal status.

    Errors raised while checking status are logged and polling continues;
    the poll budget still applies. Errors raised by ``submit`` propagate.

    Args:
        submit: Coroutine function that creates the task and returns its id.
        check: Coroutine function returning the task's current state.
        settings: Poll interval and maximum number of polls.
        label: Name used in log messages.

    Returns:
        The terminal TaskResult, or a FAILED one when the poll budget runs out.
    """
    started = datetime.now()
    task_id = await submit()
    logger.info(f"{label}: submitted task {task_id}")
    start_time = time.monotonic()

    for poll_count in range(1, settings.max_polls + 1):
        await asyncio.sleep(settings.interval_seconds)
        logger.debug(f"{label}: polling {task_id} (attempt {poll_count}/{settings.max_polls})")

        try:
            result = await check(task_id)
        except Exception as e:
            logger.warning(f"{label}: error checking task {task_id}: {e}")
            continue

        if result.status.is_terminal:
            result.started_at = result.started_at or started
            result.completed_at = datetime.now()
            if result.status == TaskStatus.COMPLETED:
                logger.info(f"{label}: task {task_id} completed")
            else:
                logger.error(f"{label}: task {task_id} {result.status.value}: {result.error_message}")
            return result

    elapsed = time.monotonic() - start_time
    logger.warning(f"{label}: task {task_id} still running after {elapsed:.1f}s, giving up")
    return TaskResult(
        task_id=task_id,
        status=TaskStatus.FAILED,
        error_message=f"Task did not finish within {settings.max_polls} polls",
        started_at=started,
        completed_at=datetime.now(),
    )
