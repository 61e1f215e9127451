# eventtalent/core/enums.py
"""
Core enums for the EventTalent booking engine.

String enums so values round-trip unchanged through the database,
JSON payloads and log records.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles mirrored from the upstream identity service."""

    ADMIN = "admin"
    ORGANIZER = "organizer"
    TALENT = "talent"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    PAID = "PAID"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class BookingDecision(str, Enum):
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class TransactionKind(str, Enum):
    BOOKING_PAYMENT = "BOOKING_PAYMENT"
    REFUND = "REFUND"
    PAYOUT = "PAYOUT"
    DISPUTE_ADJUSTMENT = "DISPUTE_ADJUSTMENT"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PaymentSource(str, Enum):
    """Inbound channel that reported a payment success."""

    GATEWAY_CALLBACK = "GATEWAY_CALLBACK"
    USER_REDIRECT = "USER_REDIRECT"


class DisputeStatus(str, Enum):
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED_ORGANIZER_FAVOR = "RESOLVED_ORGANIZER_FAVOR"
    RESOLVED_TALENT_FAVOR = "RESOLVED_TALENT_FAVOR"
    RESOLVED_PARTIAL = "RESOLVED_PARTIAL"


class DisputeResolution(str, Enum):
    ORGANIZER_FAVOR = "ORGANIZER_FAVOR"
    TALENT_FAVOR = "TALENT_FAVOR"
    PARTIAL = "PARTIAL"

    @property
    def terminal_status(self) -> DisputeStatus:
        return DisputeStatus(f"RESOLVED_{self.value}")


class DisputeReason(str, Enum):
    # Organizer-filed
    TALENT_NO_SHOW = "TALENT_NO_SHOW"
    SERVICE_NOT_AS_DESCRIBED = "SERVICE_NOT_AS_DESCRIBED"
    UNPROFESSIONAL_CONDUCT = "UNPROFESSIONAL_CONDUCT"
    # Talent-filed
    ORGANIZER_UNRESPONSIVE = "ORGANIZER_UNRESPONSIVE"
    SCOPE_DISAGREEMENT = "SCOPE_DISAGREEMENT"
    UNSAFE_ENVIRONMENT = "UNSAFE_ENVIRONMENT"
    # Either party
    OTHER = "OTHER"


class ReviewerType(str, Enum):
    ORGANIZER = "ORGANIZER"
    TALENT = "TALENT"

    @property
    def counterpart(self) -> "ReviewerType":
        return ReviewerType.TALENT if self is ReviewerType.ORGANIZER else ReviewerType.ORGANIZER


class WebhookStatus(str, Enum):
    RECEIVED = "received"
    PROCESSED = "processed"
    FAILED = "failed"
    IGNORED = "ignored"
