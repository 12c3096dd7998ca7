"""Celery application configuration.

Configures Celery with Redis as broker and result backend, sets up task
autodiscovery, and defines worker configuration.
"""

import contextlib
import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun

from scoutrank.config.settings import settings
from scoutrank.core.observability import configure_logging

logger = logging.getLogger(__name__)

# Structured logging for workers (stdout only; Celery may set logfile)
configure_logging(level=settings.app_log_level)

celery_app = Celery(
    "scoutrank",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["scoutrank.tasks.validation_tasks"],
)

celery_app.conf.update(
    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task result settings
    result_expires=3600,
    result_extended=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_routes={
        "scoutrank.tasks.validation_tasks.*": {"queue": "validation"},
    },
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

logger.info("Celery application configured successfully")


@task_prerun.connect
def _on_task_prerun(task=None, task_id=None, args=None, kwargs=None, **_):
    with contextlib.suppress(Exception):
        logger.info(
            f"celery_task_started task_id={task_id} task_name={getattr(task, 'name', None)} "
            f"correlation_id={(kwargs or {}).get('correlation_id')}"
        )


@task_postrun.connect
def _on_task_postrun(task=None, task_id=None, retval=None, state=None, **_):
    with contextlib.suppress(Exception):
        logger.info(f"celery_task_finished task_id={task_id} task_name={getattr(task, 'name', None)} state={state}")


@task_failure.connect
def _on_task_failure(task_id=None, exception=None, sender=None, **_):
    with contextlib.suppress(Exception):
        logger.error(
            f"celery_task_failed task_id={task_id} task_name={getattr(sender, 'name', None)} error={exception}"
        )
