# eventtalent/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Gateway clients come
from the cached factories in ``eventtalent.integrations`` and can be
swapped with ``app.dependency_overrides`` in tests.
"""

import logging
from typing import Any, Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from ...integrations import (
    get_availability_client,
    get_notification_client,
    get_paystack_client,
)
from ...integrations.availability_client import AvailabilityClient
from ...integrations.notification_client import NotificationClient
from ...integrations.paystack_client import PaystackClient
from ...services.booking_service import BookingService
from ...services.config_service import ConfigService
from ...services.dispute_service import DisputeService
from ...services.escrow_service import EscrowService
from ...services.notification_service import NotificationService
from ...services.rating_service import RatingService
from ...services.review_service import ReviewService
from ...tasks.enqueue import schedule_payout_retry
from .database import get_db

logger = logging.getLogger(__name__)


def get_paystack() -> PaystackClient:
    return get_paystack_client()


def get_availability() -> AvailabilityClient:
    return get_availability_client()


def get_notifier() -> NotificationClient:
    return get_notification_client()


def get_notification_service(
    client: NotificationClient = Depends(get_notifier),
) -> NotificationService:
    return NotificationService(client)


def get_config_service(db: Session = Depends(get_db)) -> ConfigService:
    return ConfigService(db)


def get_escrow_service(
    db: Session = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack),
    notification_service: NotificationService = Depends(get_notification_service),
    config_service: ConfigService = Depends(get_config_service),
) -> EscrowService:
    return EscrowService(db, paystack, notification_service, config_service)


def get_payout_retry_scheduler() -> Callable[[str], Any]:
    return schedule_payout_retry


def get_booking_service(
    db: Session = Depends(get_db),
    availability: AvailabilityClient = Depends(get_availability),
    notification_service: NotificationService = Depends(get_notification_service),
    escrow_service: EscrowService = Depends(get_escrow_service),
    config_service: ConfigService = Depends(get_config_service),
    payout_retry_scheduler: Callable[[str], Any] = Depends(get_payout_retry_scheduler),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        availability: Talent availability collaborator
        notification_service: Fire-and-forget notifications
        escrow_service: Settles payouts after completion
        config_service: Persisted settlement settings
        payout_retry_scheduler: Queues a payout retry after a retryable gateway error

    Returns:
        BookingService instance
    """
    return BookingService(
        db,
        availability,
        notification_service,
        escrow_service,
        config_service,
        payout_retry_scheduler,
    )


def get_dispute_service(
    db: Session = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack),
    notification_service: NotificationService = Depends(get_notification_service),
    config_service: ConfigService = Depends(get_config_service),
) -> DisputeService:
    return DisputeService(db, paystack, notification_service, config_service)


def get_review_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
    config_service: ConfigService = Depends(get_config_service),
) -> ReviewService:
    return ReviewService(db, notification_service, RatingService(db), config_service)
