# eventtalent/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to the services.

Endpoints:
    GET / - Bookings where the caller is a party
    POST / - Create a booking request (organizer)
    GET /{booking_id} - Booking projected for the caller's role
    POST /{booking_id}/respond - Accept or decline (talent)
    POST /{booking_id}/cancel - Cancel before payment (organizer)
    POST /{booking_id}/complete - Mark completed and settle payout (organizer or admin)
    POST /{booking_id}/disputes - File a dispute (either party)
    POST /{booking_id}/reviews - Submit a double-blind review (either party)
"""

import asyncio
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import (
    get_booking_service,
    get_current_active_user,
    get_dispute_service,
    get_review_service,
)
from ...core.enums import BookingStatus, ReviewerType
from ...models.user import User
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingRespond,
    BookingView,
    project_booking,
)
from ...schemas.dispute import DisputeCreate, DisputeResponse
from ...schemas.review import ReviewResponse, ReviewSubmitRequest
from ...services.booking_service import BookingService
from ...services.dispute_service import DisputeService
from ...services.review_service import ReviewService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def _booking_id_path() -> Any:
    return Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN)


@router.get("", response_model=List[BookingView])
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingView]:
    bookings = await asyncio.to_thread(
        booking_service.list_bookings_for_user, current_user.id, status_filter
    )
    return [project_booking(booking, current_user) for booking in bookings]


@router.post(
    "",
    response_model=BookingView,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Talent or event not found"},
        409: {"description": "Talent not available"},
    },
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingView:
    """Create a PENDING booking request for a talent."""
    if not current_user.is_organizer:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only organizers can create bookings",
        )
    booking = await asyncio.to_thread(
        booking_service.create_booking,
        current_user.id,
        booking_data.talent_id,
        booking_data.event,
        booking_data.gross_amount,
        booking_data.notes,
    )
    return project_booking(booking, current_user)


@router.get("/{booking_id}", response_model=BookingView)
async def get_booking(
    booking_id: str = _booking_id_path(),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingView:
    return await asyncio.to_thread(
        booking_service.get_booking_for_viewer, booking_id, current_user
    )


@router.post("/{booking_id}/respond", response_model=BookingView)
async def respond_to_booking(
    booking_id: str = _booking_id_path(),
    payload: BookingRespond = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingView:
    booking = await asyncio.to_thread(
        booking_service.respond_to_booking, booking_id, current_user.id, payload.decision
    )
    return project_booking(booking, current_user)


@router.post("/{booking_id}/cancel", response_model=BookingView)
async def cancel_booking(
    booking_id: str = _booking_id_path(),
    payload: Optional[BookingCancel] = Body(default=None),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingView:
    """Cancel a booking."""
    booking = await asyncio.to_thread(
        booking_service.cancel_booking,
        booking_id,
        current_user.id,
        payload.reason if payload else None,
    )
    return project_booking(booking, current_user)


@router.post("/{booking_id}/complete", response_model=BookingView)
async def complete_booking(
    booking_id: str = _booking_id_path(),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingView:
    """Mark a paid booking completed once the event is over; triggers the payout."""
    if not current_user.is_admin:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
        if booking.organizer_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the organizer or an admin can complete this booking",
            )
    booking = await asyncio.to_thread(
        booking_service.mark_completed, booking_id, current_user.id
    )
    return project_booking(booking, current_user)


@router.post(
    "/{booking_id}/disputes",
    response_model=DisputeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "An active dispute already exists"}},
)
async def file_dispute(
    booking_id: str = _booking_id_path(),
    payload: DisputeCreate = Body(...),
    current_user: User = Depends(get_current_active_user),
    dispute_service: DisputeService = Depends(get_dispute_service),
) -> DisputeResponse:
    dispute = await asyncio.to_thread(
        dispute_service.file_dispute,
        booking_id,
        current_user.id,
        payload.reason,
        payload.explanation,
    )
    return DisputeResponse.model_validate(dispute)


@router.post(
    "/{booking_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_review(
    booking_id: str = _booking_id_path(),
    payload: ReviewSubmitRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """Submit a review; it stays hidden until the other party reviews or the window elapses."""
    booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
    if current_user.id == booking.organizer_id:
        giver_role = ReviewerType.ORGANIZER
    elif current_user.id == booking.talent_id:
        giver_role = ReviewerType.TALENT
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only booking participants can leave a review",
        )
    review = await asyncio.to_thread(
        review_service.submit_review,
        booking_id,
        giver_role,
        payload.rating,
        payload.comment,
        current_user.id,
    )
    return ReviewResponse.model_validate(review)
