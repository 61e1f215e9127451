"""Repository helpers for the webhook event ledger."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..core.enums import WebhookStatus
from ..models.types import now_utc
from ..models.webhook_event import WebhookEvent
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    """Repository for webhook ledger writes and queries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, WebhookEvent)

    def record_received(
        self,
        *,
        source: str,
        event_type: str,
        payload: dict[str, Any],
        reference: Optional[str] = None,
    ) -> WebhookEvent:
        return self.create(
            source=source,
            event_type=event_type,
            payload=payload,
            reference=reference,
            status=WebhookStatus.RECEIVED.value,
        )

    def mark_outcome(
        self,
        event: WebhookEvent,
        status: WebhookStatus,
        *,
        error: Optional[str] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
        started_at: Optional[datetime] = None,
    ) -> WebhookEvent:
        finished = now_utc()
        event.status = status.value
        event.processing_error = error
        event.processed_at = finished
        if related_entity_type:
            event.related_entity_type = related_entity_type
            event.related_entity_id = related_entity_id
        if started_at is not None:
            event.processing_duration_ms = int((finished - started_at).total_seconds() * 1000)
        self.db.flush()
        return event

