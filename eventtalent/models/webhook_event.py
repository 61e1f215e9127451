"""Webhook event ledger model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.enums import WebhookStatus
from ..database import Base
from .types import JSONType, UTCDateTime, now_utc


class WebhookEvent(Base):
    """Persistence model for inbound gateway webhook events."""

    __tablename__ = "webhook_events"

    __table_args__ = (
        sa.Index("ix_webhook_events_source", "source"),
        sa.Index("ix_webhook_events_event_type", "event_type"),
        sa.Index("ix_webhook_events_status", "status"),
        sa.Index("ix_webhook_events_received_at", "received_at"),
        sa.Index("ix_webhook_events_reference", "reference"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WebhookStatus.RECEIVED.value
    )
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    processing_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    related_entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    related_entity_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    received_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=now_utc)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<WebhookEvent {self.source}:{self.event_type} {self.status}>"
