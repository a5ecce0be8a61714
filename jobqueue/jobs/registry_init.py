"""
Registers the built-in jobs with the global job registry.
"""

import logging

from jobqueue.core.registries import job_registry
from jobqueue.jobs.handlers import LogMessageJob, QueueMaintenanceJob, WebhookJob

logger = logging.getLogger(__name__)


def register_jobs() -> None:
    """Register all built-in jobs with the job registry."""

    logger.info("Registering jobs")

    for job_class in (WebhookJob, LogMessageJob, QueueMaintenanceJob):
        if job_class.job_type not in job_registry:
            job_registry.register_job(job_class)

    logger.info("Jobs registered", extra={"registered_jobs": job_registry.list()})


# Auto-register jobs when module is imported
register_jobs()
