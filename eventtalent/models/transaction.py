# eventtalent/models/transaction.py
"""
Ledger primitive: one financial event tied to exactly one booking.

Rows are append-only. After insert only ``status`` may change, and only
PENDING -> SUCCESS or PENDING -> FAILED (see ``assert_status_transition``).
``external_reference`` is the gateway idempotency key and is unique.
"""

from typing import Any, Dict

from sqlalchemy import Column, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import TransactionKind, TransactionStatus
from ..core.exceptions import IntegrityViolationException
from ..database import Base
from .types import JSONType, Money, UTCDateTime, now_utc

_ALLOWED_STATUS_TRANSITIONS = {
    TransactionStatus.PENDING.value: {
        TransactionStatus.SUCCESS.value,
        TransactionStatus.FAILED.value,
    },
}


def assert_status_transition(current: str, target: str) -> None:
    """Raise IntegrityViolationException unless current -> target is a legal ledger move."""
    if target not in _ALLOWED_STATUS_TRANSITIONS.get(current, set()):
        raise IntegrityViolationException(
            f"Illegal transaction status change {current} -> {target}",
            code="TRANSACTION_STATUS_IMMUTABLE",
            details={"current": current, "target": target},
        )


class Transaction(Base):
    """Immutable financial event (payment, refund, payout or dispute adjustment)."""

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("external_reference", name="uq_transactions_external_reference"),
        Index("ix_transactions_booking_kind", "booking_id", "kind"),
        Index("ix_transactions_status", "status"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    kind = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=TransactionStatus.PENDING.value)
    amount = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False)
    external_reference = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    metadata_json = Column(JSONType, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=now_utc)

    booking = relationship("Booking", back_populates="transactions")

    @property
    def kind_enum(self) -> TransactionKind:
        return TransactionKind(self.kind)

    @property
    def status_enum(self) -> TransactionStatus:
        return TransactionStatus(self.status)

    @property
    def is_success(self) -> bool:
        return self.status == TransactionStatus.SUCCESS.value

    def merge_metadata(self, **values: Any) -> Dict[str, Any]:
        merged = dict(self.metadata_json or {})
        merged.update({k: v for k, v in values.items() if v is not None})
        self.metadata_json = merged
        return merged

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id} {self.kind} {self.status} "
            f"{self.amount} {self.currency} ref={self.external_reference}>"
        )
