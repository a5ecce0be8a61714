"""
Job contract and base class.

A job is one executable task plus its retry policy. It says nothing about how
or when it runs: the dispatcher serializes it into a ``JobRecord`` and later
rebuilds it from the stored payload through the job registry.

Example::

    @job_registry.register_job
    class SendReceiptJob(AbstractJob):
        job_type = "send_receipt"
        max_attempts = 5

        def __init__(self, order_id: int, email: str):
            self.order_id = order_id
            self.email = email

        async def handle(self) -> None:
            await mailer.send(self.email, template="receipt", order=self.order_id)

        def serialize(self) -> dict[str, Any]:
            return {"order_id": self.order_id, "email": self.email}

        @classmethod
        def deserialize(cls, data: dict[str, Any]) -> "SendReceiptJob":
            return cls(data["order_id"], data["email"])

A job may run more than once (retries, stuck recovery), so ``handle()`` should
be idempotent. This is the caller's responsibility and is not enforced.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Job(Protocol):
    """Protocol for executable jobs."""

    job_type: str

    def handle(self) -> Any:
        """Run the job. Any exception counts as a failed attempt."""
        ...

    def serialize(self) -> dict[str, Any]:
        """Return a flat, JSON-compatible map of the job's input data."""
        ...

    def get_max_attempts(self) -> int:
        ...

    def get_retry_delay(self) -> int:
        ...

    def get_timeout(self) -> int:
        ...

    def on_failed(self, error: BaseException) -> Any:
        """Called once after the final attempt has failed."""
        ...


class AbstractJob(ABC):
    """Base class for jobs with class-level retry policy defaults."""

    job_type: ClassVar[str]

    max_attempts: int = 3
    retry_delay_seconds: int = 60  # 1 minute
    timeout_seconds: int = 300  # 5 minutes

    @abstractmethod
    async def handle(self) -> None:
        """Run the job."""

    @abstractmethod
    def serialize(self) -> dict[str, Any]:
        """Serialize the job's input data for storage."""

    @classmethod
    @abstractmethod
    def deserialize(cls, data: dict[str, Any]) -> "AbstractJob":
        """Rebuild the job from stored data."""

    def get_max_attempts(self) -> int:
        return self.max_attempts

    def get_retry_delay(self) -> int:
        return self.retry_delay_seconds

    def get_timeout(self) -> int:
        return self.timeout_seconds

    def on_failed(self, error: BaseException) -> None:
        """Log the permanent failure. Override to notify or compensate."""
        logger.error(
            "Job failed permanently",
            extra={
                "job_type": self.job_type,
                "max_attempts": self.get_max_attempts(),
                "error": str(error),
            },
        )
