# eventtalent/repositories/dispute_repository.py
"""Dispute repository: active-dispute lookups and admin statistics."""

from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import DisputeStatus
from ..core.exceptions import RepositoryException
from ..models.dispute import ACTIVE_DISPUTE_STATUSES, Dispute
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class DisputeRepository(BaseRepository[Dispute]):
    def __init__(self, db: Session):
        super().__init__(db, Dispute)

    def get_active_for_booking(self, booking_id: str) -> Optional[Dispute]:
        try:
            return (
                self.db.query(Dispute)
                .filter(
                    Dispute.booking_id == booking_id,
                    Dispute.status.in_(ACTIVE_DISPUTE_STATUSES),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting active dispute for {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve dispute: {str(e)}")

    def list_for_booking(self, booking_id: str) -> List[Dispute]:
        return (
            self.db.query(Dispute)
            .filter(Dispute.booking_id == booking_id)
            .order_by(Dispute.created_at.asc())
            .all()
        )

    def get_stats(self) -> Dict[str, Any]:
        """Per-status counts plus total refunded and paid out through resolutions."""
        try:
            rows = self.db.query(Dispute.status, func.count(Dispute.id)).group_by(Dispute.status)
            counts = {status.value: 0 for status in DisputeStatus}
            for status, count in rows.all():
                counts[status] = int(count)

            resolved = (
                self.db.query(Dispute.refund_amount, Dispute.payout_amount)
                .filter(Dispute.resolved_at.isnot(None))
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error computing dispute stats: {str(e)}")
            raise RepositoryException(f"Failed to compute dispute stats: {str(e)}")

        total_refunded = sum((r or Decimal("0.00") for r, _ in resolved), Decimal("0.00"))
        total_paid_out = sum((p or Decimal("0.00") for _, p in resolved), Decimal("0.00"))
        return {
            "counts": counts,
            "total": sum(counts.values()),
            "active": counts[DisputeStatus.OPEN.value] + counts[DisputeStatus.UNDER_REVIEW.value],
            "total_refunded": total_refunded,
            "total_paid_out": total_paid_out,
        }

    def transition_status(
        self,
        dispute_id: str,
        expected: Iterable[DisputeStatus],
        target: DisputeStatus,
        **values: Any,
    ) -> bool:
        """Compare-and-swap on dispute status; True when this caller moved it."""
        expected_values = [status.value for status in expected]
        try:
            self.db.flush()
            updated = (
                self.db.query(Dispute)
                .filter(Dispute.id == dispute_id, Dispute.status.in_(expected_values))
                .update({"status": target.value, **values}, synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning dispute {dispute_id}: {str(e)}")
            raise RepositoryException(f"Failed to update dispute status: {str(e)}")
        instance = self.db.get(Dispute, dispute_id)
        if instance is not None:
            self.db.refresh(instance)
        return updated == 1
