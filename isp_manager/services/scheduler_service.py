"""
ISP Project Manager
Scheduler Service.

Registry of maintenance jobs, executed inside the Flask app context.
There is no in-process timer: jobs are run by the ``flask run-job`` CLI
command (driven by cron or a platform scheduler) and by tests.

Architecture:
    - register_job: decorator adding a job function to the registry
    - SchedulerService.run_job: executes one job and reports its outcome
    - DEFAULT_SCHEDULES: the cadence each job is meant to run at
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from flask import Flask

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}

DEFAULT_SCHEDULES = {
    "billing_status_sweep": {"hour": "*/1", "minute": "15", "description": "Hourly at :15"},
    "stale_notification_cleanup": {"hour": "2", "minute": "0", "description": "Daily at 02:00"},
}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("billing_status_sweep")
        def sweep_billing_status(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """Runs registered jobs within the Flask app context."""

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        # Importing the jobs module populates the registry.
        from isp_manager.services import scheduled_jobs  # noqa: F401

        cls._app = app
        app.extensions["scheduler"] = cls
        logger.debug("SchedulerService initialized with %d registered jobs", len(_job_registry))

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status, duration_ms, result or error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._app.app_context():
                result = fn(cls._app)
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc)

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info("Job %s finished status=%s duration_ms=%d", job_name, status, duration_ms)
        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def list_jobs(cls) -> list[dict]:
        return [
            {
                "job_name": name,
                "description": (fn.__doc__ or "").strip().splitlines()[0] if fn.__doc__ else name,
                "schedule": DEFAULT_SCHEDULES.get(name, {"hour": "0", "minute": "0",
                                                        "description": "Daily at midnight"}),
            }
            for name, fn in _job_registry.items()
        ]
