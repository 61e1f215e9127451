"""External service integrations for the EventTalent engine."""

from functools import lru_cache

from ..core.config import settings
from .availability_client import AvailabilityClient, FakeAvailabilityClient
from .notification_client import FakeNotificationClient, NotificationClient
from .paystack_client import FakePaystackClient, PaystackClient, PaystackError


@lru_cache(maxsize=1)
def get_paystack_client() -> PaystackClient:
    if settings.use_fake_gateways:
        return FakePaystackClient()
    return PaystackClient(
        secret_key=settings.paystack_secret_key,
        base_url=settings.paystack_base_url,
        timeout=settings.gateway_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_availability_client() -> AvailabilityClient:
    if settings.use_fake_gateways:
        return FakeAvailabilityClient()
    return AvailabilityClient(
        base_url=settings.availability_service_url,
        timeout=settings.gateway_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_notification_client() -> NotificationClient:
    if settings.use_fake_gateways:
        return FakeNotificationClient()
    return NotificationClient(base_url=settings.notification_service_url)


__all__ = [
    "AvailabilityClient",
    "FakeAvailabilityClient",
    "FakeNotificationClient",
    "FakePaystackClient",
    "NotificationClient",
    "PaystackClient",
    "PaystackError",
    "get_availability_client",
    "get_notification_client",
    "get_paystack_client",
]
