"""Application-wide constants for the EventTalent booking engine."""

from __future__ import annotations

from decimal import Decimal

from .enums import BookingStatus, DisputeReason, RoleName

# Money
MONEY_QUANTUM = Decimal("0.01")
DEFAULT_PLATFORM_FEE_RATE = Decimal("0.10")
DEFAULT_CURRENCY = "KES"
DEFAULT_MIN_PAYOUT_AMOUNT = Decimal("0")

# Reviews
MIN_RATING = 1
MAX_RATING = 5
MAX_REVIEW_COMMENT_LENGTH = 1000
DEFAULT_REVIEW_DISCLOSURE_WINDOW_HOURS = 336  # 14 days

# Disputes
MAX_DISPUTE_EXPLANATION_LENGTH = 2000
MAX_RESOLUTION_NOTES_LENGTH = 2000
MAX_CANCELLATION_REASON_LENGTH = 500

ALLOWED_DISPUTE_REASONS: dict[RoleName, frozenset[DisputeReason]] = {
    RoleName.ORGANIZER: frozenset(
        {
            DisputeReason.TALENT_NO_SHOW,
            DisputeReason.SERVICE_NOT_AS_DESCRIBED,
            DisputeReason.UNPROFESSIONAL_CONDUCT,
            DisputeReason.OTHER,
        }
    ),
    RoleName.TALENT: frozenset(
        {
            DisputeReason.ORGANIZER_UNRESPONSIVE,
            DisputeReason.SCOPE_DISAGREEMENT,
            DisputeReason.UNSAFE_ENVIRONMENT,
            DisputeReason.OTHER,
        }
    ),
}

# Booking lifecycle. Admin dispute resolution is the only way out of DISPUTED.
BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {
            BookingStatus.ACCEPTED,
            BookingStatus.DECLINED,
            BookingStatus.CANCELLED,
            BookingStatus.DISPUTED,
        }
    ),
    BookingStatus.ACCEPTED: frozenset(
        {BookingStatus.PAID, BookingStatus.CANCELLED, BookingStatus.DISPUTED}
    ),
    BookingStatus.PAID: frozenset({BookingStatus.COMPLETED, BookingStatus.DISPUTED}),
    BookingStatus.COMPLETED: frozenset({BookingStatus.DISPUTED}),
    BookingStatus.DISPUTED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.DECLINED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, frozenset())


DISPUTABLE_BOOKING_STATUSES = frozenset(
    {
        BookingStatus.PENDING,
        BookingStatus.ACCEPTED,
        BookingStatus.PAID,
        BookingStatus.COMPLETED,
    }
)

# Gateway references
PAYMENT_REFERENCE_PREFIX = "ETB"
PAYOUT_REFERENCE_PREFIX = "ETP"
DISPUTE_REFERENCE_PREFIX = "ETD"

# Notification types
NOTIFY_BOOKING_REQUESTED = "booking_requested"
NOTIFY_BOOKING_ACCEPTED = "booking_accepted"
NOTIFY_BOOKING_DECLINED = "booking_declined"
NOTIFY_BOOKING_CANCELLED = "booking_cancelled"
NOTIFY_BOOKING_COMPLETED = "booking_completed"
NOTIFY_PAYMENT_CONFIRMED = "payment_confirmed"
NOTIFY_PAYOUT_SENT = "payout_sent"
NOTIFY_DISPUTE_FILED = "dispute_filed"
NOTIFY_DISPUTE_RESOLVED = "dispute_resolved"
NOTIFY_REVIEW_RECEIVED = "review_received"

# Query limits
DEFAULT_SWEEP_BATCH_SIZE = 500
