"""
Built-in jobs.

These jobs are registered with the global job registry by
``jobqueue.jobs.registry_init``.
"""

import logging
from typing import Any

import httpx

from jobqueue.config.settings import settings
from jobqueue.infra.database import get_database
from jobqueue.jobs.base import AbstractJob
from jobqueue.jobs.store import SqlAlchemyJobStore

logger = logging.getLogger(__name__)


class WebhookJob(AbstractJob):
    """
    Deliver a JSON body to an HTTP endpoint.

    Payload expected:
    {
        "url": "https://example.com/hooks/orders",
        "body": {...},             # optional
        "headers": {"X-Key": "…"}  # optional
    }

    Any non-2xx response raises, so delivery is retried with the job's
    retry policy.
    """

    job_type = "webhook"
    max_attempts = 5
    retry_delay_seconds = 120
    timeout_seconds = 30

    def __init__(
        self,
        url: str,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        if not url:
            raise ValueError("url is required in payload")
        self.url = url
        self.body = body or {}
        self.headers = headers or {}

    async def handle(self) -> None:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(self.url, json=self.body, headers=self.headers)
            response.raise_for_status()

        logger.info(
            "Webhook delivered",
            extra={"url": self.url, "status_code": response.status_code},
        )

    def serialize(self) -> dict[str, Any]:
        return {"url": self.url, "body": self.body, "headers": self.headers}

    @classmethod
    def deserialize(cls, data: dict[str, Any]) -> "WebhookJob":
        return cls(data.get("url", ""), data.get("body"), data.get("headers"))


class LogMessageJob(AbstractJob):
    """Write a structured log line. Handy for smoke-testing a deployment."""

    job_type = "log_message"
    max_attempts = 1

    def __init__(self, message: str, level: str = "info"):
        if level not in ("debug", "info", "warning", "error"):
            raise ValueError(f"Unsupported log level: {level}")
        self.message = message
        self.level = level

    async def handle(self) -> None:
        logger.log(
            getattr(logging, self.level.upper()),
            self.message,
            extra={"job_type": self.job_type},
        )

    def serialize(self) -> dict[str, Any]:
        return {"message": self.message, "level": self.level}

    @classmethod
    def deserialize(cls, data: dict[str, Any]) -> "LogMessageJob":
        return cls(data["message"], data.get("level", "info"))


class QueueMaintenanceJob(AbstractJob):
    """
    Run queue housekeeping from inside the queue.

    Payload expected:
    {
        "tasks": ["cleanup", "reset_stuck"],  # optional, defaults to both
        "days_to_keep": 7                     # optional
    }
    """

    job_type = "queue_maintenance"
    max_attempts = 1

    TASKS = ("cleanup", "reset_stuck")

    def __init__(self, tasks: list[str] | None = None, days_to_keep: int | None = None):
        tasks = list(tasks) if tasks else list(self.TASKS)
        unknown = sorted(set(tasks) - set(self.TASKS))
        if unknown:
            raise ValueError(f"Unknown maintenance tasks: {', '.join(unknown)}")
        self.tasks = tasks
        self.days_to_keep = (
            days_to_keep if days_to_keep is not None else settings.job_cleanup_after_days
        )
        self.results: dict[str, int] = {}

    async def handle(self) -> None:
        store = SqlAlchemyJobStore(get_database(settings).SessionLocal)

        if "reset_stuck" in self.tasks:
            self.results["reset_stuck"] = await store.reset_stuck()
        if "cleanup" in self.tasks:
            self.results["cleanup"] = await store.delete_terminal_older_than(
                self.days_to_keep
            )

        logger.info("Maintenance tasks completed", extra={"results": self.results})

    def serialize(self) -> dict[str, Any]:
        return {"tasks": self.tasks, "days_to_keep": self.days_to_keep}

    @classmethod
    def deserialize(cls, data: dict[str, Any]) -> "QueueMaintenanceJob":
        return cls(data.get("tasks"), data.get("days_to_keep"))
