"""
SQLAlchemy models for the EventTalent engine.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import Booking
from .dispute import Dispute
from .event import Event
from .platform_config import PlatformConfig
from .review import Review
from .transaction import Transaction
from .user import User, UserProfile
from .webhook_event import WebhookEvent

__all__ = [
    "Booking",
    "Dispute",
    "Event",
    "PlatformConfig",
    "Review",
    "Transaction",
    "User",
    "UserProfile",
    "WebhookEvent",
]
