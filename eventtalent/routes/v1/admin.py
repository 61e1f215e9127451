# eventtalent/routes/v1/admin.py
"""
Admin routes - API v1

Endpoints (all require an admin caller):
    GET /disputes/stats - Dispute counts and money totals
    POST /disputes/{dispute_id}/review - Start reviewing an OPEN dispute
    POST /disputes/{dispute_id}/resolve - Resolve and reallocate escrow
    GET /config - Current settlement configuration
    PUT /config - Update settlement configuration
    POST /bookings/{booking_id}/payout - Settle (or retry) a completed booking's payout
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, Path

from ...api.dependencies import (
    get_config_service,
    get_dispute_service,
    get_escrow_service,
    require_admin,
)
from ...models.user import User
from ...schemas.dispute import DisputeResolve, DisputeResponse, DisputeStatsResponse
from ...schemas.payment import PayoutResponse
from ...schemas.platform_config import SettlementConfigResponse, SettlementConfigUpdate
from ...services.config_service import ConfigService
from ...services.dispute_service import DisputeService
from ...services.escrow_service import EscrowService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-v1"])


@router.get("/disputes/stats", response_model=DisputeStatsResponse)
async def get_dispute_stats(
    _: User = Depends(require_admin),
    dispute_service: DisputeService = Depends(get_dispute_service),
) -> DisputeStatsResponse:
    stats = await asyncio.to_thread(dispute_service.get_dispute_stats)
    return DisputeStatsResponse(**stats)


@router.post("/disputes/{dispute_id}/review", response_model=DisputeResponse)
async def start_dispute_review(
    dispute_id: str = Path(...),
    admin: User = Depends(require_admin),
    dispute_service: DisputeService = Depends(get_dispute_service),
) -> DisputeResponse:
    dispute = await asyncio.to_thread(dispute_service.start_review, dispute_id, admin.id)
    return DisputeResponse.model_validate(dispute)


@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    dispute_id: str = Path(...),
    payload: DisputeResolve = Body(...),
    admin: User = Depends(require_admin),
    dispute_service: DisputeService = Depends(get_dispute_service),
) -> DisputeResponse:
    """Resolve a dispute. Gateway failures leave the dispute UNDER_REVIEW for a retry."""
    dispute = await asyncio.to_thread(
        dispute_service.resolve_dispute,
        dispute_id,
        admin.id,
        payload.resolution,
        payload.resolution_notes,
        payload.refund_amount,
        payload.payout_amount,
    )
    return DisputeResponse.model_validate(dispute)


@router.get("/config", response_model=SettlementConfigResponse)
async def get_settlement_config(
    _: User = Depends(require_admin),
    config_service: ConfigService = Depends(get_config_service),
) -> SettlementConfigResponse:
    config, updated_at = await asyncio.to_thread(config_service.get_settlement_config_with_meta)
    return SettlementConfigResponse(config=config, updated_at=updated_at)


@router.put("/config", response_model=SettlementConfigResponse)
async def update_settlement_config(
    payload: SettlementConfigUpdate = Body(...),
    admin: User = Depends(require_admin),
    config_service: ConfigService = Depends(get_config_service),
) -> SettlementConfigResponse:
    changes = payload.model_dump(exclude_unset=True, mode="json")
    config, updated_at = await asyncio.to_thread(
        config_service.update_settlement_config, changes, admin.id
    )
    return SettlementConfigResponse(config=config, updated_at=updated_at)


@router.post("/bookings/{booking_id}/payout", response_model=PayoutResponse)
async def settle_payout(
    booking_id: str = Path(...),
    _: User = Depends(require_admin),
    escrow_service: EscrowService = Depends(get_escrow_service),
) -> PayoutResponse:
    payout = await asyncio.to_thread(escrow_service.settle_payout, booking_id)
    return PayoutResponse(
        booking_id=booking_id,
        transaction_id=payout.id,
        reference=payout.external_reference,
        amount=str(payout.amount),
        status=payout.status,
        is_paid_out=True,
    )
