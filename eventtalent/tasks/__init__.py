# eventtalent/tasks/__init__.py
"""
Celery tasks package for EventTalent.

Scheduled sweeps:
- Booking completion and payout settlement
- Payout retries
- Review grace-period disclosure

Run a worker with: celery -A eventtalent.tasks worker
"""

from .booking_tasks import complete_due_bookings, retry_failed_payouts, settle_booking_payout
from .celery_app import BaseTask, celery_app
from .review_tasks import sweep_review_grace_period

__all__ = [
    "celery_app",
    "BaseTask",
    "complete_due_bookings",
    "retry_failed_payouts",
    "settle_booking_payout",
    "sweep_review_grace_period",
]
