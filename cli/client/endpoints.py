"""API Endpoint Wrappers"""

from typing import Any

import httpx

from ..utils.config_manager import config
from .base import APIClient, JobQueueError

__all__ = ["JobQueueClient", "JobQueueError"]


class JobQueueClient:
    """High-level client with one method per admin endpoint"""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        api_config = config.load_config().get("api", {})
        final_base_url = base_url or api_config.get(
            "base_url", "http://localhost:8000"
        )

        self.api = APIClient(
            base_url=final_base_url,
            timeout=int(api_config.get("timeout", 30)),
            headers=api_config.get("headers", {}),
            transport=transport,
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    def stats(self) -> dict[str, Any]:
        """Get queue statistics"""
        return self.api.get("/jobs/stats/overview")

    def list_jobs(
        self,
        status: str | None = None,
        type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List job records with filters"""
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if status:
            params["status"] = status
        if type:
            params["type"] = type
        return self.api.get("/jobs", params)

    def get_job(self, job_id: int) -> dict[str, Any]:
        """Get a job record by ID"""
        return self.api.get(f"/jobs/{job_id}")

    def enqueue(
        self, type: str, payload: dict[str, Any], delay_seconds: int = 0
    ) -> dict[str, Any]:
        """Enqueue a job"""
        return self.api.post(
            "/jobs",
            json={"type": type, "payload": payload, "delay_seconds": delay_seconds},
        )

    def process(self, limit: int | None = None) -> dict[str, Any]:
        """Process one batch of ready jobs"""
        params = {"limit": limit} if limit else None
        return self.api.post("/jobs/process", params=params)

    def reset_stuck(self) -> dict[str, Any]:
        """Recover stuck jobs"""
        return self.api.post("/jobs/reset-stuck")

    def cleanup(self, days_to_keep: int | None = None) -> dict[str, Any]:
        """Delete old terminal records"""
        params = {"days_to_keep": days_to_keep} if days_to_keep is not None else None
        return self.api.post("/jobs/cleanup", params=params)
