# eventtalent/tasks/booking_tasks.py
"""
Celery tasks for booking completion and payout settlement.

Every task opens its own session and builds services the same way the
request dependencies do. The services commit their own transactions.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, ParamSpec, Protocol, TypeVar, cast

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from ..core.exceptions import GatewayException
from ..database import get_db_session
from ..integrations import (
    get_availability_client,
    get_notification_client,
    get_paystack_client,
)
from ..services.booking_service import BookingService
from ..services.config_service import ConfigService
from ..services.escrow_service import EscrowService
from ..services.notification_service import NotificationService
from .celery_app import celery_app
from .enqueue import schedule_payout_retry

P = ParamSpec("P")
R = TypeVar("R", covariant=True)

logger = logging.getLogger(__name__)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


def build_escrow_service(db: Session) -> EscrowService:
    config_service = ConfigService(db)
    notification_service = NotificationService(get_notification_client())
    return EscrowService(db, get_paystack_client(), notification_service, config_service)


def build_booking_service(db: Session) -> BookingService:
    config_service = ConfigService(db)
    notification_service = NotificationService(get_notification_client())
    escrow_service = EscrowService(
        db, get_paystack_client(), notification_service, config_service
    )
    return BookingService(
        db,
        get_availability_client(),
        notification_service,
        escrow_service,
        config_service,
        schedule_payout_retry,
    )


@typed_task(bind=True, max_retries=3, name="eventtalent.tasks.booking_tasks.complete_due_bookings")
def complete_due_bookings(self: Any) -> Dict[str, Any]:
    """
    Complete PAID bookings whose event has ended and settle their payouts.

    Runs every 15 minutes. Bookings under an active dispute are never picked up.
    """
    with get_db_session() as db:
        result = build_booking_service(db).complete_due_bookings()
    summary = {**result.model_dump(), "processed_at": datetime.now(timezone.utc).isoformat()}
    logger.info(f"Completed due bookings: {summary}")
    return summary


@typed_task(bind=True, max_retries=3, name="eventtalent.tasks.booking_tasks.retry_failed_payouts")
def retry_failed_payouts(self: Any) -> Dict[str, Any]:
    """Retry payouts for completed bookings that are not yet paid out."""
    with get_db_session() as db:
        result = build_escrow_service(db).retry_failed_payouts()
    summary = {**result.model_dump(), "processed_at": datetime.now(timezone.utc).isoformat()}
    logger.info(f"Payout retry sweep: {summary}")
    return summary


@typed_task(
    bind=True,
    max_retries=5,
    default_retry_delay=120,
    name="eventtalent.tasks.booking_tasks.settle_booking_payout",
)
def settle_booking_payout(self: Any, booking_id: str) -> Dict[str, Any]:
    """
    Settle one booking's payout.

    Retryable gateway failures are retried with the same payout reference;
    definitive rejections propagate and fail the task.
    """
    try:
        with get_db_session() as db:
            payout = build_escrow_service(db).settle_payout(booking_id)
            result = {
                "booking_id": booking_id,
                "transaction_id": payout.id,
                "reference": payout.external_reference,
                "amount": str(payout.amount),
            }
    except GatewayException as exc:
        if not exc.retryable:
            raise
        logger.warning(
            f"Payout for booking {booking_id} failed, retrying: {exc.message}",
            extra={"booking_id": booking_id, "reference": exc.reference},
        )
        raise self.retry(exc=exc)
    return result
