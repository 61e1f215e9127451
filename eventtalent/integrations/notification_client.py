"""Client for the fire-and-forget notification collaborator."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.exceptions import GatewayException

logger = logging.getLogger(__name__)


class NotificationClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def notify(self, user_id: str, notification_type: str, payload: Dict[str, Any]) -> None:
        body = {"user_id": user_id, "type": notification_type, "payload": payload}
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.post(f"{self._base_url}/notifications", json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise GatewayException(
                    f"Notification service responded with status {exc.response.status_code}",
                    code="NOTIFICATION_ERROR",
                ) from exc
            except httpx.RequestError as exc:
                raise GatewayException(
                    "Failed to reach notification service", code="NOTIFICATION_ERROR"
                ) from exc


class FakeNotificationClient(NotificationClient):
    """Records notifications in memory instead of sending them."""

    def __init__(self) -> None:
        super().__init__(base_url="http://notifications.invalid")
        self.sent: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def notify(self, user_id: str, notification_type: str, payload: Dict[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append({"user_id": user_id, "type": notification_type, "payload": payload})

    def sent_to(self, user_id: str) -> List[str]:
        return [item["type"] for item in self.sent if item["user_id"] == user_id]
