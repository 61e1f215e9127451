# eventtalent/routes/v1/internal.py
"""
Scheduler-facing endpoints, authenticated with the cron bearer token.

Each endpoint runs one sweep synchronously and returns its counts. All
sweeps are idempotent and may overlap with the Celery beat schedule.
"""

import asyncio

from fastapi import APIRouter, Depends

from ...api.dependencies import (
    get_booking_service,
    get_escrow_service,
    get_review_service,
    verify_cron_secret,
)
from ...schemas.booking import BookingSweepResult
from ...schemas.payment import PayoutSweepResult
from ...schemas.review import GracePeriodSweepResult
from ...services.booking_service import BookingService
from ...services.escrow_service import EscrowService
from ...services.review_service import ReviewService

router = APIRouter(
    tags=["internal"],
    include_in_schema=False,
    dependencies=[Depends(verify_cron_secret)],
)


@router.post("/reviews/grace-period", response_model=GracePeriodSweepResult)
async def sweep_review_grace_period(
    review_service: ReviewService = Depends(get_review_service),
) -> GracePeriodSweepResult:
    return await asyncio.to_thread(review_service.sweep_grace_period)


@router.post("/bookings/complete-due", response_model=BookingSweepResult)
async def complete_due_bookings(
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingSweepResult:
    return await asyncio.to_thread(booking_service.complete_due_bookings)


@router.post("/payouts/retry", response_model=PayoutSweepResult)
async def retry_failed_payouts(
    escrow_service: EscrowService = Depends(get_escrow_service),
) -> PayoutSweepResult:
    return await asyncio.to_thread(escrow_service.retry_failed_payouts)
