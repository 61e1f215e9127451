"""
Task enqueue helpers.

Services hand work to Celery by task name through ``enqueue_task`` so the
web process never has to import the worker modules.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .celery_app import celery_app

logger = logging.getLogger(__name__)

SETTLE_BOOKING_PAYOUT_TASK = "eventtalent.tasks.booking_tasks.settle_booking_payout"
PAYOUT_RETRY_COUNTDOWN_SECONDS = 120


def enqueue_task(
    task_name: str,
    args: Optional[Tuple[Any, ...]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    **options: Any,
) -> Any:
    """
    Enqueue a Celery task by its registered name.

    Args:
        task_name: Fully qualified task name (e.g., "eventtalent.tasks.booking_tasks.settle_booking_payout")
        args: Positional arguments for the task
        kwargs: Keyword arguments for the task
        **options: Additional send options (countdown, eta, queue, etc.)

    Returns:
        AsyncResult from Celery
    """
    return celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {}, **options)


def schedule_payout_retry(booking_id: str) -> Any:
    """Queue ``settle_booking_payout`` for a booking whose transfer hit a retryable error."""
    result = enqueue_task(
        SETTLE_BOOKING_PAYOUT_TASK,
        args=(booking_id,),
        countdown=PAYOUT_RETRY_COUNTDOWN_SECONDS,
    )
    logger.info(
        "Payout retry scheduled",
        extra={"booking_id": booking_id, "countdown": PAYOUT_RETRY_COUNTDOWN_SECONDS},
    )
    return result
