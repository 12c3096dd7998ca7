"""Celery task definitions for background validation and statistics jobs."""

from scoutrank.tasks.celery_app import celery_app

# Import task modules to ensure registration
from scoutrank.tasks import validation_tasks  # noqa: F401

__all__ = ["celery_app"]
