# eventtalent/tasks/celery_app.py
"""
Celery application configuration for EventTalent.

This module sets up the Celery app with Redis as the broker and backend,
configures task serialization, timezone, and autodiscovery.
"""

import logging
import os
from typing import Any, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from ..core.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    # Priority: CELERY_BROKER_URL -> settings.redis_url
    broker_url = os.getenv("CELERY_BROKER_URL") or settings.redis_url
    result_backend = os.getenv("CELERY_RESULT_BACKEND") or broker_url

    celery_app = Celery(
        "eventtalent",
        broker=broker_url,
        backend=result_backend,
    )

    base_config = {
        # Task settings
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
        # Worker settings
        "worker_prefetch_multiplier": 1,
        "worker_max_tasks_per_child": 1000,
        # Task execution settings
        "task_soft_time_limit": 300,  # 5 minutes soft limit
        "task_time_limit": 600,  # 10 minutes hard limit
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        # Error handling
        "task_default_retry_delay": 60,
        "task_max_retries": 3,
        "beat_schedule_filename": "celerybeat-schedule",
        "worker_hijack_root_logger": False,
        "worker_redirect_stdouts": True,
        "worker_redirect_stdouts_level": "INFO",
        "broker_transport_options": {
            "visibility_timeout": 3600,
        },
    }
    if settings.environment == "test":
        base_config["task_always_eager"] = True
        base_config["task_eager_propagates"] = True

    celery_app.conf.update(base_config)

    # Force import of task modules so tasks are registered even if autodiscovery fails
    celery_app.conf.imports = tuple(
        set((celery_app.conf.imports or ()))
        | {
            "eventtalent.tasks.booking_tasks",
            "eventtalent.tasks.review_tasks",
        }
    )

    celery_app.conf.task_routes = {
        "eventtalent.tasks.booking_tasks.*": {"queue": "payments"},
        "eventtalent.tasks.review_tasks.*": {"queue": "celery"},
    }

    celery_app.autodiscover_tasks(["eventtalent"])

    from .beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule(settings.environment)

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Base task that logs failures, retries and completions."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger = logging.getLogger(__name__)
        logger.error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "task_args": str(args),
                "task_kwargs": str(kwargs),
            },
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger = logging.getLogger(__name__)
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries} due to: {exc}",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "retry_count": self.request.retries,
            },
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        logger = logging.getLogger(__name__)
        logger.info(
            f"Task {self.name}[{task_id}] completed successfully",
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_success(retval, task_id, args, kwargs)


# Register BaseTask as default task base for the app
celery_app.Task = cast(Type[Task], BaseTask)
