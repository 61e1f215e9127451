# eventtalent/repositories/factory.py
"""
Repository Factory for the EventTalent engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .booking_repository import BookingRepository
from .dispute_repository import DisputeRepository
from .event_repository import EventRepository
from .platform_config_repository import PlatformConfigRepository
from .review_repository import ReviewRepository
from .transaction_repository import TransactionRepository
from .user_repository import UserRepository
from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_transaction_repository(db: Session) -> TransactionRepository:
        return TransactionRepository(db)

    @staticmethod
    def create_dispute_repository(db: Session) -> DisputeRepository:
        return DisputeRepository(db)

    @staticmethod
    def create_review_repository(db: Session) -> ReviewRepository:
        return ReviewRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)

    @staticmethod
    def create_event_repository(db: Session) -> EventRepository:
        return EventRepository(db)

    @staticmethod
    def create_platform_config_repository(db: Session) -> PlatformConfigRepository:
        return PlatformConfigRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> WebhookEventRepository:
        return WebhookEventRepository(db)
