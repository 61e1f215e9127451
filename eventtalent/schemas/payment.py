"""Payment and payout schemas."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import Booking
from ..models.transaction import Transaction
from ._strict_base import StrictModel


@dataclass(frozen=True)
class CheckoutSession:
    reference: str
    authorization_url: str
    access_code: str


@dataclass(frozen=True)
class PaymentConfirmation:
    """Result of confirm_payment; ``already_processed`` marks the idempotent short-circuit."""

    transaction: Transaction
    booking: Booking
    already_processed: bool


class CheckoutSessionResponse(StrictModel):
    reference: str
    authorization_url: str
    access_code: str


class PaymentConfirmationResponse(StrictModel):
    booking_id: str
    reference: str
    booking_status: str
    transaction_status: str
    already_processed: bool


class PaystackWebhookPayload(BaseModel):
    """Envelope of a Paystack webhook; ``data`` is kept loose."""

    model_config = ConfigDict(extra="allow")

    event: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> Optional[str]:
        value = self.data.get("reference")
        return str(value) if value else None


class WebhookAck(StrictModel):
    status: str
    event: Optional[str] = None


class PayoutResponse(StrictModel):
    booking_id: str
    transaction_id: str
    reference: Optional[str] = None
    amount: str
    status: str
    is_paid_out: bool


class PayoutSweepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    examined: int = 0
    settled: int = 0
    failed: int = 0
    skipped: int = 0
