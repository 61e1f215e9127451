"""Schemas for the persisted settlement configuration."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_MIN_PAYOUT_AMOUNT,
    DEFAULT_PLATFORM_FEE_RATE,
    DEFAULT_REVIEW_DISCLOSURE_WINDOW_HOURS,
)

SETTLEMENT_CONFIG_KEY = "settlement"


class SettlementConfig(BaseModel):
    """Business settings stored under the ``settlement`` platform_config key."""

    model_config = ConfigDict(extra="forbid")

    platform_fee_rate: Decimal = Field(
        default=DEFAULT_PLATFORM_FEE_RATE,
        ge=0,
        lt=1,
        description="Share of gross booking value retained by the platform",
    )
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)
    review_disclosure_window_hours: int = Field(
        default=DEFAULT_REVIEW_DISCLOSURE_WINDOW_HOURS,
        ge=1,
        le=24 * 90,
        description="Hours after which a one-sided review is revealed",
    )
    min_payout_amount: Decimal = Field(default=DEFAULT_MIN_PAYOUT_AMOUNT, ge=0)
    notify_on_payment: bool = True
    notify_on_dispute: bool = True

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("currency must be an ISO 4217 code")
        return value.upper()


class SettlementConfigResponse(BaseModel):
    config: SettlementConfig
    updated_at: Optional[datetime] = None


class SettlementConfigUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    model_config = ConfigDict(extra="forbid")

    platform_fee_rate: Optional[Decimal] = Field(default=None, ge=0, lt=1)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    review_disclosure_window_hours: Optional[int] = Field(default=None, ge=1, le=24 * 90)
    min_payout_amount: Optional[Decimal] = Field(default=None, ge=0)
    notify_on_payment: Optional[bool] = None
    notify_on_dispute: Optional[bool] = None
