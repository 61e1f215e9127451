"""
Booking request and per-role response schemas.

Each caller role gets its own projection type instead of one response with
fields stripped at the boundary. ``project_booking`` picks the projection.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.constants import MAX_CANCELLATION_REASON_LENGTH
from ..core.enums import BookingDecision, BookingStatus, TransactionKind
from ..models.booking import Booking
from ..models.user import User
from ._strict_base import StrictModel, StrictRequestModel


class EventSpec(StrictRequestModel):
    """Either an existing event id or the details of a new event."""

    event_id: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=200)
    venue: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _existing_or_new(self) -> "EventSpec":
        if self.event_id:
            return self
        if not self.title or self.starts_at is None or self.ends_at is None:
            raise ValueError("new events need title, starts_at and ends_at")
        return self


class BookingCreate(StrictRequestModel):
    talent_id: str
    event: EventSpec
    gross_amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookingRespond(StrictRequestModel):
    decision: BookingDecision


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(default=None, max_length=MAX_CANCELLATION_REASON_LENGTH)


class EventView(StrictModel):
    id: str
    title: str
    venue: Optional[str] = None
    starts_at: datetime
    ends_at: datetime


class TransactionView(StrictModel):
    id: str
    kind: TransactionKind
    status: str
    amount: Decimal
    currency: str
    external_reference: Optional[str] = None
    user_id: str
    created_at: datetime


class _BookingViewBase(StrictModel):
    id: str
    status: BookingStatus
    organizer_id: str
    talent_id: str
    event: EventView
    proposed_date: datetime
    currency: str
    notes: Optional[str] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class BookingOrganizerView(_BookingViewBase):
    """What the paying organizer sees: the full charge and their payment reference."""

    view: str = "organizer"
    gross_amount: Decimal
    platform_fee_amount: Decimal
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class BookingTalentView(_BookingViewBase):
    """What the talent sees: their net payout, never the organizer's payment data."""

    view: str = "talent"
    talent_amount: Decimal
    is_paid_out: bool
    paid_out_at: Optional[datetime] = None


class BookingAdminView(_BookingViewBase):
    view: str = "admin"
    gross_amount: Decimal
    platform_fee_amount: Decimal
    talent_amount: Decimal
    is_paid_out: bool
    paid_at: Optional[datetime] = None
    paid_out_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    transactions: List[TransactionView] = Field(default_factory=list)


BookingView = Union[BookingAdminView, BookingOrganizerView, BookingTalentView]


def _common(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "status": booking.status,
        "organizer_id": booking.organizer_id,
        "talent_id": booking.talent_id,
        "event": EventView.model_validate(booking.event),
        "proposed_date": booking.proposed_date,
        "currency": booking.currency,
        "notes": booking.notes,
        "created_at": booking.created_at,
        "accepted_at": booking.accepted_at,
        "completed_at": booking.completed_at,
        "cancelled_at": booking.cancelled_at,
    }


def _latest_payment_reference(booking: Booking) -> Optional[str]:
    payments = [
        txn
        for txn in booking.transactions
        if txn.kind == TransactionKind.BOOKING_PAYMENT.value and txn.external_reference
    ]
    successful = [txn for txn in payments if txn.is_success]
    chosen = successful or payments
    return chosen[-1].external_reference if chosen else None


def project_booking(booking: Booking, viewer: User) -> BookingView:
    """
    Build the projection for ``viewer``.

    Raises PermissionError when the viewer is neither a party nor an admin.
    """
    if viewer.is_admin:
        return BookingAdminView(
            **_common(booking),
            gross_amount=booking.gross_amount,
            platform_fee_amount=booking.platform_fee_amount,
            talent_amount=booking.talent_amount,
            is_paid_out=booking.is_paid_out,
            paid_at=booking.paid_at,
            paid_out_at=booking.paid_out_at,
            cancelled_by_id=booking.cancelled_by_id,
            cancellation_reason=booking.cancellation_reason,
            transactions=[TransactionView.model_validate(t) for t in booking.transactions],
        )
    if viewer.id == booking.organizer_id:
        return BookingOrganizerView(
            **_common(booking),
            gross_amount=booking.gross_amount,
            platform_fee_amount=booking.platform_fee_amount,
            payment_reference=_latest_payment_reference(booking),
            paid_at=booking.paid_at,
            cancellation_reason=booking.cancellation_reason,
        )
    if viewer.id == booking.talent_id:
        return BookingTalentView(
            **_common(booking),
            talent_amount=booking.talent_amount,
            is_paid_out=booking.is_paid_out,
            paid_out_at=booking.paid_out_at,
        )
    raise PermissionError(f"user {viewer.id} is not a party to booking {booking.id}")


class BookingSweepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    examined: int = 0
    completed: int = 0
    failed: int = 0
