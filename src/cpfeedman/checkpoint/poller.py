"""Wait for script tasks to finish.

The management server is the only source of truth for task state: every
round re-queries all task ids and classifies them from scratch.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from cpfeedman.checkpoint.models import TaskDetail
from cpfeedman.checkpoint.scripts import show_tasks
from cpfeedman.checkpoint.session import CheckPointSession

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_TIMEOUT = 120.0


@dataclass
class PollResult:
    """Outcome of one polling run.

    Attributes:
        finished: Tasks whose status is "succeeded".
        unfinished_ids: Ids still "in progress" when polling stopped.
        timed_out: Polling stopped because the timeout elapsed.
        cancelled: Polling stopped because the stop event was set.
        non_success_count: Terminal tasks with any other status.
        status_counts: Tasks per status in the last round.
    """

    finished: list[TaskDetail] = field(default_factory=list)
    unfinished_ids: list[str] = field(default_factory=list)
    timed_out: bool = False
    cancelled: bool = False
    non_success_count: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return not self.unfinished_ids and not self.non_success_count and not self.cancelled

    def messages(self) -> dict[str, str]:
        """Decoded script output per finished task, skipping empty ones."""
        messages = {}
        for task in self.finished:
            text = task.response_text()
            if text:
                messages[task.task_id] = text
        return messages


class TaskPoller:
    """Polls ``show-task`` at a fixed interval until tasks settle.

    Example:
        poller = TaskPoller(session, poll_interval=1.0, timeout=120.0)
        result = await poller.poll_until_done(response.task_ids())
        for task_id, text in result.messages().items():
            print(task_id, text)
    """

    def __init__(
        self,
        session: CheckPointSession,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._clock = clock

    async def _wait(self, stop_event: asyncio.Event | None) -> bool:
        """Sleep one interval. Returns True if the stop event fired."""
        if stop_event is None:
            await asyncio.sleep(self.poll_interval)
            return False
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def poll_until_done(
        self,
        task_ids: list[str],
        stop_event: asyncio.Event | None = None,
    ) -> PollResult:
        """Poll until no task is "in progress", the timeout elapses, or stop_event is set.

        A timeout is not an error; the remaining tasks are reported in
        ``unfinished_ids`` and left alone.

        Args:
            task_ids: Task ids returned by run-script
            stop_event: Optional event that aborts the wait early

        Returns:
            PollResult describing the last round

        Raises:
            CheckPointError: If a show-task query fails
        """
        result = PollResult(unfinished_ids=list(task_ids))
        if not task_ids:
            return result

        started = self._clock()
        while True:
            logger.info(f"Waiting for tasks to finish: {result.unfinished_ids}")
            if await self._wait(stop_event):
                logger.info("Task polling cancelled")
                result.cancelled = True
                break

            response = await show_tasks(self.session, task_ids)
            result.status_counts = response.tasks_by_status()
            result.finished = response.finished_tasks()
            result.unfinished_ids = response.unfinished_task_ids()
            result.non_success_count = len(response.non_success_tasks())
            logger.info(f"Tasks by status: {result.status_counts}")

            if not result.unfinished_ids:
                if result.non_success_count:
                    logger.warning(f"{result.non_success_count} task(s) ended without success")
                else:
                    logger.info("All tasks finished successfully")
                break

            if self._clock() - started > self.timeout:
                logger.warning(
                    f"Timeout after {self.timeout:.0f} s waiting for tasks, abandoning {result.unfinished_ids}"
                )
                result.timed_out = True
                break

        return result
