"""Review schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.constants import MAX_RATING, MAX_REVIEW_COMMENT_LENGTH, MIN_RATING
from ..core.enums import ReviewerType
from ._strict_base import StrictModel, StrictRequestModel


class ReviewSubmitRequest(StrictRequestModel):
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)
    comment: Optional[str] = Field(default=None, max_length=MAX_REVIEW_COMMENT_LENGTH)


class ReviewResponse(StrictModel):
    """Returned to the giver; visibility tells them whether the counterpart has reviewed."""

    id: str
    booking_id: str
    reviewer_type: ReviewerType
    rating: int
    comment: Optional[str] = None
    is_visible: bool
    created_at: datetime


class GracePeriodSweepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    examined: int = 0
    revealed: int = 0
    paired: int = 0
    skipped: int = 0
