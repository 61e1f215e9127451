"""Fire-and-forget notifications to booking participants and admins."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from ..integrations.notification_client import NotificationClient

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Wraps the notification collaborator.

    Delivery failures are logged and suppressed; they must never undo the
    financial operation that triggered them. Call only after commit.
    """

    def __init__(self, client: NotificationClient) -> None:
        self.client = client

    def notify(
        self, user_id: str, notification_type: str, payload: Optional[Dict[str, Any]] = None
    ) -> bool:
        try:
            self.client.notify(user_id, notification_type, payload or {})
            return True
        except Exception as exc:
            logger.warning(
                "Notification delivery failed",
                extra={
                    "user_id": user_id,
                    "notification_type": notification_type,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

    def notify_many(
        self,
        user_ids: Iterable[str],
        notification_type: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        delivered = 0
        for user_id in dict.fromkeys(user_ids):
            if self.notify(user_id, notification_type, payload):
                delivered += 1
        return delivered
