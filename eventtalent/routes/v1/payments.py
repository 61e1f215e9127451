# eventtalent/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    POST /bookings/{booking_id}/initiate - Open a gateway checkout (organizer)
    POST /webhook - Gateway server-to-server callback (signed)
    GET /callback - Browser redirect after checkout

The webhook and the redirect both end in EscrowService.confirm_payment;
whichever arrives second observes the first one's result.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status

from ...api.dependencies import get_current_active_user, get_escrow_service
from ...models.user import User
from ...schemas.payment import (
    CheckoutSessionResponse,
    PaymentConfirmation,
    PaymentConfirmationResponse,
    WebhookAck,
)
from ...services.escrow_service import EscrowService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])

SIGNATURE_HEADER = "x-paystack-signature"


def _confirmation_response(confirmation: PaymentConfirmation) -> PaymentConfirmationResponse:
    return PaymentConfirmationResponse(
        booking_id=confirmation.booking.id,
        reference=confirmation.transaction.external_reference,
        booking_status=confirmation.booking.status,
        transaction_status=confirmation.transaction.status,
        already_processed=confirmation.already_processed,
    )


@router.post(
    "/bookings/{booking_id}/initiate",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_payment(
    booking_id: str = Path(..., description="Booking ULID"),
    current_user: User = Depends(get_current_active_user),
    escrow_service: EscrowService = Depends(get_escrow_service),
) -> CheckoutSessionResponse:
    """Start checkout for an accepted booking."""
    session = await asyncio.to_thread(
        escrow_service.initiate_payment, booking_id, current_user.id
    )
    return CheckoutSessionResponse(
        reference=session.reference,
        authorization_url=session.authorization_url,
        access_code=session.access_code,
    )


@router.post("/webhook", response_model=WebhookAck)
async def paystack_webhook(
    request: Request,
    escrow_service: EscrowService = Depends(get_escrow_service),
) -> WebhookAck:
    """
    Gateway callback.

    The signature is computed over the raw body, so the body is read as bytes
    and handed to the service untouched.
    """
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("Missing Paystack signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {SIGNATURE_HEADER} header",
        )
    return await asyncio.to_thread(escrow_service.handle_webhook, payload, signature)


@router.get("/callback", response_model=PaymentConfirmationResponse)
async def payment_callback(
    reference: Optional[str] = Query(default=None),
    trxref: Optional[str] = Query(default=None),
    escrow_service: EscrowService = Depends(get_escrow_service),
) -> PaymentConfirmationResponse:
    """Browser redirect from the hosted checkout page."""
    ref = reference or trxref
    if not ref:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="reference is required",
        )
    confirmation = await asyncio.to_thread(escrow_service.handle_redirect, ref)
    return _confirmation_response(confirmation)
