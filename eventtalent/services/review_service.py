# eventtalent/services/review_service.py
"""
Review Visibility Controller.

Reviews are double-blind: each one is stored invisible and revealed either
together with the counterpart's review or, when the counterpart never
arrives, by the grace-period sweep. Every reveal re-checks the pair inside
the transaction that performs it, so a submit racing the sweep cannot leave
one side hidden.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.constants import MAX_RATING, MAX_REVIEW_COMMENT_LENGTH, MIN_RATING, NOTIFY_REVIEW_RECEIVED
from ..core.enums import BookingStatus, ReviewerType
from ..core.exceptions import (
    ConflictException,
    DuplicateRecordException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from ..models.booking import Booking
from ..models.review import Review
from ..models.types import now_utc
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.review import GracePeriodSweepResult
from .base import BaseService
from .config_service import ConfigService
from .notification_service import NotificationService
from .rating_service import RatingService


class ReviewService(BaseService):
    """Double-blind review submission and grace-period disclosure."""

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService,
        rating_service: Optional[RatingService] = None,
        config_service: Optional[ConfigService] = None,
    ) -> None:
        super().__init__(db)
        self.review_repository = RepositoryFactory.create_review_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.notification_service = notification_service
        self.rating_service = rating_service or RatingService(db)
        self.config_service = config_service or ConfigService(db)

    @BaseService.measure_operation("submit_review")
    def submit_review(
        self,
        booking_id: str,
        giver_role: ReviewerType,
        rating: int,
        comment: Optional[str] = None,
        giver_id: Optional[str] = None,
    ) -> Review:
        """
        Store a hidden review; reveal both sides if the counterpart already reviewed.

        Raises:
            ValidationException: rating outside 1-5 or comment too long
            ForbiddenException: giver_id is not the booking party for giver_role
            InvalidStateException: booking is not COMPLETED
            ConflictException: this role already reviewed the booking
        """
        try:
            giver_role = ReviewerType(giver_role)
        except ValueError as exc:
            raise ValidationException(f"Unknown reviewer type: {giver_role}") from exc
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationException("Rating must be a whole number")
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationException(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
        comment = (comment or "").strip() or None
        if comment is not None and len(comment) > MAX_REVIEW_COMMENT_LENGTH:
            raise ValidationException(
                f"Comment must be at most {MAX_REVIEW_COMMENT_LENGTH} characters"
            )

        booking = self._get_booking(booking_id)
        if booking.status != BookingStatus.COMPLETED.value:
            raise InvalidStateException(
                "Reviews can only be left for completed bookings", current_state=booking.status
            )
        expected_giver, receiver_id = self._parties(booking, giver_role)
        if giver_id is not None and giver_id != expected_giver:
            raise ForbiddenException("You can only review bookings you took part in")

        revealed = False
        try:
            with self.booking_mutex(booking_id), self.transaction():
                if self.review_repository.get_for_booking_and_type(booking_id, giver_role):
                    raise ConflictException(
                        "You have already reviewed this booking",
                        code="REVIEW_ALREADY_SUBMITTED",
                        details={"booking_id": booking_id, "reviewer_type": giver_role.value},
                    )
                review = self.review_repository.create(
                    booking_id=booking_id,
                    giver_id=expected_giver,
                    receiver_id=receiver_id,
                    reviewer_type=giver_role.value,
                    rating=rating,
                    comment=comment,
                    is_visible=False,
                )
                counterpart = self.review_repository.get_for_booking_and_type(
                    booking_id, giver_role.counterpart
                )
                if counterpart is not None:
                    self._reveal([review, counterpart])
                    revealed = True
        except DuplicateRecordException as exc:
            raise ConflictException(
                "You have already reviewed this booking",
                code="REVIEW_ALREADY_SUBMITTED",
                details={"booking_id": booking_id, "reviewer_type": giver_role.value},
            ) from exc

        if revealed:
            prometheus_metrics.record_reviews_revealed("pair", 2)
        self.logger.info(
            "Review submitted",
            extra={
                "booking_id": booking_id,
                "reviewer_type": giver_role.value,
                "revealed": revealed,
            },
        )
        self.notification_service.notify(
            receiver_id, NOTIFY_REVIEW_RECEIVED, {"booking_id": booking_id, "visible": revealed}
        )
        return review

    @BaseService.measure_operation("sweep_grace_period")
    def sweep_grace_period(self, now: Optional[datetime] = None) -> GracePeriodSweepResult:
        """
        Reveal one-sided reviews older than the disclosure window.

        Safe to run repeatedly or concurrently: each candidate is re-read under
        its booking lock and skipped when already visible. A booking whose lock
        stays busy is counted as skipped and left for the next run.
        """
        current_time = now or now_utc()
        window = self.config_service.get_settlement_config().review_disclosure_window_hours
        cutoff = current_time - timedelta(hours=window)
        candidates = [
            (review.id, review.booking_id)
            for review in self.review_repository.list_hidden_older_than(cutoff)
        ]

        revealed = paired = skipped = 0
        for review_id, booking_id in candidates:
            try:
                with self.booking_mutex(booking_id), self.transaction():
                    review = self.review_repository.get_by_id_for_update(review_id)
                    if review is None or review.is_visible:
                        continue
                    counterpart = self.review_repository.get_for_booking_and_type(
                        booking_id, ReviewerType(review.reviewer_type).counterpart
                    )
                    if counterpart is not None:
                        revealed += self._reveal([review, counterpart], now=current_time)
                        paired += 1
                    else:
                        revealed += self._reveal([review], now=current_time)
            except ConflictException as exc:
                # Busy booking; the next sweep picks the review up again
                skipped += 1
                self.logger.warning(
                    "Grace-period reveal skipped for busy booking",
                    extra={"booking_id": booking_id, "review_id": review_id, "code": exc.code},
                )

        if revealed:
            prometheus_metrics.record_reviews_revealed("grace_period", revealed)
        result = GracePeriodSweepResult(
            examined=len(candidates), revealed=revealed, paired=paired, skipped=skipped
        )
        self.logger.info(
            "Grace-period sweep finished",
            extra={**result.model_dump(), "cutoff": cutoff.isoformat()},
        )
        return result

    def list_reviews_for_booking(self, booking_id: str) -> List[Review]:
        return self.review_repository.list_for_booking(booking_id)

    # Helpers

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @staticmethod
    def _parties(booking: Booking, giver_role: ReviewerType) -> tuple[str, str]:
        if giver_role is ReviewerType.ORGANIZER:
            return booking.organizer_id, booking.talent_id
        return booking.talent_id, booking.organizer_id

    def _reveal(self, reviews: List[Review], now: Optional[datetime] = None) -> int:
        """Flip hidden reviews visible and refresh each receiver's rating. No commit."""
        revealed_at = now or now_utc()
        flipped = [review for review in reviews if not review.is_visible]
        for review in flipped:
            review.is_visible = True
            review.revealed_at = revealed_at
        self.review_repository.flush()
        for receiver_id in dict.fromkeys(review.receiver_id for review in flipped):
            self.rating_service.recompute_rating(receiver_id)
        return len(flipped)
