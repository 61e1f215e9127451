"""Dispute request/response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field

from ..core.constants import MAX_DISPUTE_EXPLANATION_LENGTH, MAX_RESOLUTION_NOTES_LENGTH
from ..core.enums import DisputeReason, DisputeResolution, DisputeStatus
from ._strict_base import StrictModel, StrictRequestModel


class DisputeCreate(StrictRequestModel):
    reason: DisputeReason
    explanation: str = Field(..., min_length=1, max_length=MAX_DISPUTE_EXPLANATION_LENGTH)


class DisputeResolve(StrictRequestModel):
    resolution: DisputeResolution
    resolution_notes: str = Field(..., min_length=1, max_length=MAX_RESOLUTION_NOTES_LENGTH)
    refund_amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    payout_amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)


class DisputeResponse(StrictModel):
    id: str
    booking_id: str
    disputed_by_id: str
    filer_role: str
    reason: DisputeReason
    explanation: str
    status: DisputeStatus
    resolution_notes: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    payout_amount: Optional[Decimal] = None
    resolved_by_id: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class DisputeStatsResponse(StrictModel):
    counts: Dict[str, int]
    total: int
    active: int
    total_refunded: Decimal
    total_paid_out: Decimal
