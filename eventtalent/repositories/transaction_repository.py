# eventtalent/repositories/transaction_repository.py
"""
Transaction (ledger) repository.

Ledger rows are inserted once and only their status moves forward.
``mark_status`` is a compare-and-swap on the status column, which is what
collapses duplicate payment confirmations into a single transition.
"""

from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import TransactionKind, TransactionStatus
from ..core.exceptions import RepositoryException
from ..models.transaction import Transaction, assert_status_transition
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ZERO = Decimal("0.00")


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for ledger rows."""

    def __init__(self, db: Session):
        super().__init__(db, Transaction)

    def get_by_reference(self, reference: str, for_update: bool = False) -> Optional[Transaction]:
        try:
            query = self.db.query(Transaction).filter(Transaction.external_reference == reference)
            if for_update:
                query = query.populate_existing().with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting transaction by reference {reference}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve transaction: {str(e)}")

    def mark_status(
        self,
        transaction: Transaction,
        target: TransactionStatus,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Move ``transaction`` from PENDING to ``target``.

        Returns False when another writer already moved it. Raises
        IntegrityViolationException for any non-forward move.
        """
        assert_status_transition(TransactionStatus.PENDING.value, target.value)
        values: Dict[str, Any] = {"status": target.value}
        if metadata:
            merged = dict(transaction.metadata_json or {})
            merged.update({k: v for k, v in metadata.items() if v is not None})
            values["metadata_json"] = merged
        try:
            self.db.flush()
            updated = (
                self.db.query(Transaction)
                .filter(
                    Transaction.id == transaction.id,
                    Transaction.status == TransactionStatus.PENDING.value,
                )
                .update(values, synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating transaction {transaction.id}: {str(e)}")
            raise RepositoryException(f"Failed to update transaction status: {str(e)}")
        self.db.refresh(transaction)
        return updated == 1

    def list_for_booking(
        self,
        booking_id: str,
        kind: Optional[TransactionKind] = None,
        status: Optional[TransactionStatus] = None,
    ) -> List[Transaction]:
        try:
            query = self.db.query(Transaction).filter(Transaction.booking_id == booking_id)
            if kind is not None:
                query = query.filter(Transaction.kind == kind.value)
            if status is not None:
                query = query.filter(Transaction.status == status.value)
            return query.order_by(Transaction.created_at.asc(), Transaction.id.asc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing transactions for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to list transactions: {str(e)}")

    def list_by_reference_prefix(self, prefix: str) -> List[Transaction]:
        """Attempts sharing a reference stem (``ETD-<id>-REFUND``, ``ETD-<id>-REFUND-2``), oldest first."""
        try:
            return (
                self.db.query(Transaction)
                .filter(Transaction.external_reference.like(f"{prefix}%"))
                .order_by(Transaction.created_at.asc(), Transaction.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing transactions for prefix {prefix}: {str(e)}")
            raise RepositoryException(f"Failed to list transactions: {str(e)}")

    def get_payment_placeholder(self, booking_id: str) -> Optional[Transaction]:
        """PENDING BOOKING_PAYMENT row created with the booking, oldest first."""
        pending = self.list_for_booking(
            booking_id, TransactionKind.BOOKING_PAYMENT, TransactionStatus.PENDING
        )
        return pending[0] if pending else None

    def get_successful(self, booking_id: str, kind: TransactionKind) -> Optional[Transaction]:
        rows = self.list_for_booking(booking_id, kind, TransactionStatus.SUCCESS)
        return rows[0] if rows else None

    def sum_for_booking(
        self,
        booking_id: str,
        kind: TransactionKind,
        status: TransactionStatus = TransactionStatus.SUCCESS,
    ) -> Decimal:
        # Summed in Python: SQLite stores money as text
        rows = self.list_for_booking(booking_id, kind, status)
        return sum((row.amount for row in rows), _ZERO)

    def escrow_balance(self, booking_id: str) -> Decimal:
        """Collected payment minus everything already refunded or paid out."""
        collected = self.sum_for_booking(booking_id, TransactionKind.BOOKING_PAYMENT)
        released = self.sum_for_booking(booking_id, TransactionKind.REFUND) + self.sum_for_booking(
            booking_id, TransactionKind.PAYOUT
        )
        return collected - released

    def count_attempts(self, booking_id: str, kind: TransactionKind) -> int:
        try:
            return (
                self.db.query(Transaction)
                .filter(Transaction.booking_id == booking_id, Transaction.kind == kind.value)
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting transactions: {str(e)}")
            raise RepositoryException(f"Failed to count transactions: {str(e)}")
