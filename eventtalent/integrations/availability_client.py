"""Client for the talent availability collaborator service."""

from __future__ import annotations

from datetime import datetime
import json
import logging
from typing import List, Optional, Set, Tuple

import httpx

from ..core.exceptions import GatewayException

logger = logging.getLogger(__name__)


class AvailabilityClient:
    """Answers ``is the talent free between start and end``."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def is_available(self, talent_id: str, start: datetime, end: datetime) -> bool:
        params = {"talent_id": talent_id, "start": start.isoformat(), "end": end.isoformat()}
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.get(f"{self._base_url}/availability", params=params)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error("Availability service error %s for talent %s", status, talent_id)
                raise GatewayException(
                    f"Availability service responded with status {status}",
                    retryable=status >= 500,
                    code="AVAILABILITY_ERROR",
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Availability service unreachable: %s", str(exc))
                raise GatewayException(
                    "Failed to reach availability service", code="AVAILABILITY_ERROR"
                ) from exc
            except json.JSONDecodeError as exc:
                raise GatewayException(
                    "Malformed availability response", code="AVAILABILITY_ERROR"
                ) from exc
        return bool(payload.get("available", False))


class FakeAvailabilityClient(AvailabilityClient):
    """In-memory availability: every talent is free unless blocked."""

    def __init__(self) -> None:
        super().__init__(base_url="http://availability.invalid")
        self.unavailable_talent: Set[str] = set()
        self.blocked: List[Tuple[str, datetime, datetime]] = []
        self.error: Optional[GatewayException] = None

    def block(self, talent_id: str, start: datetime, end: datetime) -> None:
        self.blocked.append((talent_id, start, end))

    def is_available(self, talent_id: str, start: datetime, end: datetime) -> bool:
        if self.error is not None:
            raise self.error
        if talent_id in self.unavailable_talent:
            return False
        for blocked_id, blocked_start, blocked_end in self.blocked:
            if blocked_id == talent_id and blocked_start < end and start < blocked_end:
                return False
        return True
