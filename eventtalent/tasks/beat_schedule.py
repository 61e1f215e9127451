# eventtalent/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for EventTalent.

All scheduled jobs are idempotent sweeps; the matching /api/v1/internal
endpoints run the same code for external schedulers.
"""

from typing import Any, Dict

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    # Reveal one-sided reviews whose disclosure window has elapsed
    "sweep-review-grace-period": {
        "task": "eventtalent.tasks.review_tasks.sweep_review_grace_period",
        "schedule": crontab(minute=5),  # Hourly
        "options": {"priority": 4},
    },
    # Complete paid bookings whose event has ended, then settle payouts
    "complete-due-bookings": {
        "task": "eventtalent.tasks.booking_tasks.complete_due_bookings",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "payments", "priority": 6},
    },
    # Retry payouts stuck after a retryable gateway failure
    "retry-failed-payouts": {
        "task": "eventtalent.tasks.booking_tasks.retry_failed_payouts",
        "schedule": crontab(minute=35),  # Hourly
        "options": {"queue": "payments", "priority": 6},
    },
}

# Faster cadence for local and development environments
DEVELOPMENT_SCHEDULE_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "sweep-review-grace-period": {"schedule": crontab(minute="*/5")},
    "complete-due-bookings": {"schedule": crontab(minute="*/5")},
}


def get_beat_schedule(environment: str = "production") -> Dict[str, Dict[str, Any]]:
    """
    Get the beat schedule for the given environment.

    Args:
        environment: Environment name (local, development, staging, production, test)

    Returns:
        Beat schedule dictionary
    """
    schedule = {name: dict(entry) for name, entry in CELERYBEAT_SCHEDULE.items()}
    if environment in ("local", "development"):
        for name, overrides in DEVELOPMENT_SCHEDULE_OVERRIDES.items():
            schedule[name].update(overrides)
    return schedule
