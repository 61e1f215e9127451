# eventtalent/tasks/review_tasks.py
"""Celery task that discloses one-sided reviews after the grace period."""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from ..database import get_db_session
from ..integrations import get_notification_client
from ..services.config_service import ConfigService
from ..services.notification_service import NotificationService
from ..services.rating_service import RatingService
from ..services.review_service import ReviewService
from .booking_tasks import typed_task

logger = logging.getLogger(__name__)


@typed_task(
    bind=True, max_retries=3, name="eventtalent.tasks.review_tasks.sweep_review_grace_period"
)
def sweep_review_grace_period(self: Any) -> Dict[str, Any]:
    with get_db_session() as db:
        service = ReviewService(
            db,
            NotificationService(get_notification_client()),
            RatingService(db),
            ConfigService(db),
        )
        result = service.sweep_grace_period()
    summary = {**result.model_dump(), "processed_at": datetime.now(timezone.utc).isoformat()}
    logger.info(f"Review grace-period sweep: {summary}")
    return summary
