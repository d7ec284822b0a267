import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ..utils.date_utils import parse_duration

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


@dataclass
class _Schedule:
    name: str
    job: Job
    next_interval: Callable[[], int]


class Scheduler:
    """
    Runs async jobs forever, one asyncio task per job.

    A job is awaited to completion before its next sleep starts, so runs of the
    same job never overlap, and the sleep length is asked for again after each
    run. Errors raised by a job are logged and the loop carries on.
    """

    def __init__(self):
        self.tasks: List[asyncio.Task] = []

    @staticmethod
    async def _loop(schedule: _Schedule):
        try:
            while True:
                try:
                    await schedule.job()
                except Exception as e:
                    logger.error(f"Scheduled job '{schedule.name}' failed: {e}", exc_info=True)

                delay = schedule.next_interval()
                logger.debug(f"Next run of '{schedule.name}' in {delay}s.")
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            logger.info(f"Scheduled job '{schedule.name}' cancelled.")
            raise

    def add_job(
        self,
        job_func: Job,
        interval_seconds: Optional[int] = None,
        interval_fn: Optional[Callable[[], int]] = None,
        name: Optional[str] = None,
    ) -> asyncio.Task:
        """
        Starts running `job_func` on the current loop.

        `interval_fn` wins over `interval_seconds` when both are given.

        Raises:
            ValueError: if neither a positive interval nor an interval_fn is given.
        """
        if interval_fn is None:
            if not interval_seconds or interval_seconds <= 0:
                raise ValueError("A positive interval_seconds or an interval_fn is required.")
            seconds = int(interval_seconds)
            interval_fn = lambda: seconds  # noqa: E731

        schedule = _Schedule(name=name or getattr(job_func, "__name__", "job"), job=job_func, next_interval=interval_fn)
        task = asyncio.create_task(self._loop(schedule), name=schedule.name)
        self.tasks.append(task)
        logger.info(f"Scheduled job '{schedule.name}'.")
        return task

    def add_job_from_string(self, job_func: Job, interval_str: str, name: Optional[str] = None) -> asyncio.Task:
        """
        Same as add_job with a duration string such as '30s', '5m' or '1h30m'.

        Raises:
            ConfigurationError: if the duration cannot be parsed.
        """
        return self.add_job(job_func, interval_seconds=parse_duration(interval_str), name=name)

    async def stop(self):
        """Cancels every job and returns once all of them have finished."""
        pending, self.tasks = self.tasks, []
        if not pending:
            return
        logger.info(f"Stopping {len(pending)} scheduled job(s).")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
