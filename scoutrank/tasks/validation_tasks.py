"""Scouter validation and OPR background tasks.

Celery workers run sync code, so each task bridges to the async services
with a fresh event loop and a freshly connected application container.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from scoutrank.bootstrap import application
from scoutrank.core.errors import InsufficientDataError, ScoutRankError, ValidationError
from scoutrank.core.observability import clear_correlation_id, set_correlation_id
from scoutrank.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

# Retrying these cannot change the outcome
NON_RETRYABLE_CODES = frozenset({"MATCH_NOT_FOUND", "INVALID_CONTEXT"})


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, InsufficientDataError):
        return False
    if isinstance(exc, ValidationError):
        return exc.code not in NON_RETRYABLE_CODES
    return True


async def _run_validate_event(event_key: str, strategy_types: Sequence[str] | None) -> dict[str, Any]:
    async with application() as container:
        summary = await container.validation_service.validate_event(event_key, strategy_types)
    return summary.model_dump(mode="json")


async def _run_recalculate_opr(event_key: str) -> dict[str, Any]:
    async with application() as container:
        metrics = await container.opr_service.recalculate_opr_metrics(event_key)
    return metrics.model_dump(mode="json")


def _run_in_new_loop(coro: Any) -> Any:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(
    name="scoutrank.tasks.validation_tasks.validate_event_task",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def validate_event_task(
    self: Any,  # Celery task instance
    event_key: str,
    strategy_types: list[str] | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Validate every match of an event and update scouter ratings.

    Args:
        event_key: Event to validate, e.g. 2025wimi
        strategy_types: Strategy names to run (all registered when None)
        correlation_id: Caller's id, bound to every log line of the run

    Returns:
        Dictionary with the execution summary, or the error for
        non-retryable failures

    Raises:
        Retry: On transient failures (database, cache)
    """
    set_correlation_id(correlation_id or f"task:{self.request.id}")
    logger.info(f"[Task {self.request.id}] Validating event {event_key}")

    try:
        summary = _run_in_new_loop(_run_validate_event(event_key, strategy_types))
        logger.info(
            f"[Task {self.request.id}] Event {event_key} validated: "
            f"{summary['total_validations']} validations, {len(summary['errors'])} errors"
        )
        return {"success": True, "event_key": event_key, "summary": summary, "task_id": self.request.id}

    except Exception as exc:
        logger.error(f"[Task {self.request.id}] Validation failed for event {event_key}: {exc}")
        if not _is_retryable(exc):
            error = exc.to_dict() if isinstance(exc, ScoutRankError) else {"message": str(exc)}
            return {"success": False, "event_key": event_key, "error": error, "task_id": self.request.id}
        raise self.retry(exc=exc, countdown=2**self.request.retries) from exc

    finally:
        clear_correlation_id()


@celery_app.task(
    name="scoutrank.tasks.validation_tasks.recalculate_opr_task",
    bind=True,
    max_retries=3,
    default_retry_delay=30,
)
def recalculate_opr_task(
    self: Any,
    event_key: str,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Drop cached OPR metrics for an event and compute them again."""
    set_correlation_id(correlation_id or f"task:{self.request.id}")
    logger.info(f"[Task {self.request.id}] Recalculating OPR for {event_key}")

    try:
        metrics = _run_in_new_loop(_run_recalculate_opr(event_key))
        return {
            "success": True,
            "event_key": event_key,
            "teams": len(metrics["ccwm"]),
            "total_matches": metrics["total_matches"],
            "warnings": metrics["warnings"],
            "task_id": self.request.id,
        }

    except Exception as exc:
        logger.error(f"[Task {self.request.id}] OPR recalculation failed for {event_key}: {exc}")
        if not _is_retryable(exc):
            error = exc.to_dict() if isinstance(exc, ScoutRankError) else {"message": str(exc)}
            return {"success": False, "event_key": event_key, "error": error, "task_id": self.request.id}
        raise self.retry(exc=exc, countdown=2**self.request.retries) from exc

    finally:
        clear_correlation_id()
