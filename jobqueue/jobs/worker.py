"""
Periodic trigger for the job dispatcher.
"""

import asyncio
import logging
import os
import socket

from jobqueue.config.settings import Settings
from jobqueue.jobs.dispatcher import JobDispatcher

logger = logging.getLogger(__name__)


class JobWorker:
    """
    Drives a ``JobDispatcher`` on fixed intervals.

    Three independent loops run until ``stop()``:
    - queue processing every ``job_poll_interval_s``
    - stuck job recovery every ``job_stuck_check_interval_s``
    - retention cleanup every ``job_cleanup_interval_s``

    Infrastructure errors inside a loop are logged and the loop backs off;
    they never stop the other loops. ``run_once()`` performs a single
    recovery + processing pass for cron-driven deployments.
    """

    def __init__(self, dispatcher: JobDispatcher, settings: Settings):
        self.dispatcher = dispatcher
        self.settings = settings
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start the worker loops and block until stopped."""
        if self.running:
            raise RuntimeError("Worker is already running")

        self.running = True
        self._stop_event.clear()
        logger.info(
            "Starting job worker",
            extra={
                "worker_id": self.worker_id,
                "poll_interval_s": self.settings.job_poll_interval_s,
                "process_limit": self.settings.job_process_limit,
            },
        )

        try:
            await asyncio.gather(
                self._loop(
                    "process_queue",
                    self._process_once,
                    self.settings.job_poll_interval_s,
                ),
                self._loop(
                    "reset_stuck",
                    self.dispatcher.reset_stuck,
                    self.settings.job_stuck_check_interval_s,
                ),
                self._loop(
                    "cleanup",
                    self._cleanup_once,
                    self.settings.job_cleanup_interval_s,
                ),
            )
        finally:
            self.running = False
            logger.info("Job worker stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Ask the loops to finish after their current pass."""
        logger.info("Stopping job worker", extra={"worker_id": self.worker_id})
        self._stop_event.set()

    async def run_once(self) -> dict[str, int]:
        """Recover stuck records, then process one batch of ready records."""
        recovered = await self.dispatcher.reset_stuck()
        processed = await self._process_once()
        return {"recovered": recovered, "processed": processed}

    async def _process_once(self) -> int:
        return await self.dispatcher.process_queue(self.settings.job_process_limit)

    async def _cleanup_once(self) -> int:
        return await self.dispatcher.cleanup(self.settings.job_cleanup_after_days)

    async def _loop(self, name: str, action, interval_s: int) -> None:
        while not self._stop_event.is_set():
            try:
                count = await action()
                if count:
                    logger.info(
                        "Worker pass finished",
                        extra={"worker_id": self.worker_id, "task": name, "count": count},
                    )
            except Exception:
                logger.exception(
                    "Error in worker loop",
                    extra={"worker_id": self.worker_id, "task": name},
                )

            await self._sleep(interval_s)

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
