# tests/conftest.py
"""
Pytest configuration for the EventTalent engine.

Every test gets a fresh in-memory SQLite database and in-memory gateway
clients. The Redis booking mutex is disabled; the status compare-and-swap
is what the tests exercise.
"""

import os

# CRITICAL: Set testing mode BEFORE any eventtalent imports!
os.environ["CI"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["USE_FAKE_GATEWAYS"] = "true"
os.environ["BOOKING_LOCK_ENABLED"] = "false"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_fake_paystack"
os.environ["CRON_SECRET"] = "test-cron-secret"

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from eventtalent.api.dependencies.database import get_db
from eventtalent.api.dependencies.services import (
    get_availability,
    get_notifier,
    get_paystack,
    get_payout_retry_scheduler,
)
from eventtalent.core.config import settings
from eventtalent.core.enums import BookingDecision, PaymentSource, RoleName
from eventtalent.database import Base
from eventtalent.integrations import (
    FakeAvailabilityClient,
    FakeNotificationClient,
    FakePaystackClient,
)
import eventtalent.models  # noqa: F401  registers tables
from eventtalent.models.booking import Booking
from eventtalent.models.user import User
from eventtalent.schemas.booking import EventSpec
from eventtalent.services.booking_service import BookingService
from eventtalent.services.config_service import ConfigService
from eventtalent.services.dispute_service import DisputeService
from eventtalent.services.escrow_service import EscrowService
from eventtalent.services.notification_service import NotificationService
from eventtalent.services.rating_service import RatingService
from eventtalent.services.review_service import ReviewService

TALENT_PAYOUT_HANDLE = "058:0123456789"


@pytest.fixture(autouse=True)
def _disable_booking_lock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "booking_lock_enabled", False)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    TestingSessionLocal = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# Gateway fakes
# ============================================================================


@pytest.fixture
def paystack() -> FakePaystackClient:
    return FakePaystackClient()


@pytest.fixture
def availability() -> FakeAvailabilityClient:
    return FakeAvailabilityClient()


@pytest.fixture
def notifier() -> FakeNotificationClient:
    return FakeNotificationClient()


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def notification_service(notifier: FakeNotificationClient) -> NotificationService:
    return NotificationService(notifier)


@pytest.fixture
def config_service(db: Session) -> ConfigService:
    return ConfigService(db)


@pytest.fixture
def escrow_service(db, paystack, notification_service, config_service) -> EscrowService:
    return EscrowService(db, paystack, notification_service, config_service)


@pytest.fixture
def payout_retries() -> List[str]:
    """Booking ids handed to the payout retry scheduler."""
    return []


@pytest.fixture
def booking_service(
    db, availability, notification_service, escrow_service, config_service, payout_retries
) -> BookingService:
    return BookingService(
        db,
        availability,
        notification_service,
        escrow_service,
        config_service,
        payout_retries.append,
    )


@pytest.fixture
def dispute_service(db, paystack, notification_service, config_service) -> DisputeService:
    return DisputeService(db, paystack, notification_service, config_service)


@pytest.fixture
def review_service(db, notification_service, config_service) -> ReviewService:
    return ReviewService(db, notification_service, RatingService(db), config_service)


# ============================================================================
# Users
# ============================================================================


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(role: RoleName, **overrides) -> User:
        counter["n"] += 1
        user = User(
            email=overrides.pop("email", f"{role.value}{counter['n']}@example.com"),
            name=overrides.pop("name", f"{role.value.title()} {counter['n']}"),
            role=role.value,
            is_active=overrides.pop("is_active", True),
            **overrides,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def organizer(make_user) -> User:
    return make_user(RoleName.ORGANIZER, name="Olivia Organizer")


@pytest.fixture
def talent(make_user) -> User:
    return make_user(
        RoleName.TALENT, name="Tariq Talent", payout_account_handle=TALENT_PAYOUT_HANDLE
    )


@pytest.fixture
def admin(make_user) -> User:
    return make_user(RoleName.ADMIN, name="Ada Admin")


@pytest.fixture
def outsider(make_user) -> User:
    return make_user(RoleName.ORGANIZER, name="Oscar Outsider")


# ============================================================================
# Booking lifecycle helper
# ============================================================================


@dataclass
class BookingFlow:
    """Drives a booking through the real services to a requested state."""

    booking_service: BookingService
    escrow_service: EscrowService
    organizer: User
    talent: User

    def event_spec(self, starts_in: timedelta = timedelta(days=3)) -> EventSpec:
        starts_at = datetime.now(timezone.utc) + starts_in
        return EventSpec(
            title="Launch party",
            venue="Sarit Centre",
            starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=4),
        )

    def pending(self, gross: str = "10000.00") -> Booking:
        return self.booking_service.create_booking(
            self.organizer.id, self.talent.id, self.event_spec(), Decimal(gross)
        )

    def accepted(self, gross: str = "10000.00") -> Booking:
        booking = self.pending(gross)
        return self.booking_service.respond_to_booking(
            booking.id, self.talent.id, BookingDecision.ACCEPTED
        )

    def paid(self, gross: str = "10000.00") -> Booking:
        booking = self.accepted(gross)
        session = self.escrow_service.initiate_payment(booking.id, self.organizer.id)
        confirmation = self.escrow_service.confirm_payment(
            session.reference, PaymentSource.GATEWAY_CALLBACK
        )
        return confirmation.booking

    def after_event(self, booking: Booking) -> datetime:
        return booking.event.ends_at + timedelta(hours=1)

    def completed(self, gross: str = "10000.00") -> Booking:
        booking = self.paid(gross)
        return self.booking_service.mark_completed(
            booking.id, self.organizer.id, now=self.after_event(booking)
        )


@pytest.fixture
def flow(booking_service, escrow_service, organizer, talent) -> BookingFlow:
    return BookingFlow(booking_service, escrow_service, organizer, talent)


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        return {"X-User-Id": user.id}

    return _headers


@pytest.fixture
def client(db, paystack, availability, notifier, payout_retries) -> Iterator[TestClient]:
    """TestClient wired to the test session and gateway fakes (no lifespan)."""
    from eventtalent.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_paystack] = lambda: paystack
    app.dependency_overrides[get_availability] = lambda: availability
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_payout_retry_scheduler] = lambda: payout_retries.append
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def cron_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {settings.cron_secret.get_secret_value()}"}


# ============================================================================
# Booking mutex backed by an in-memory Redis
# ============================================================================


class InMemoryLockRedis:
    """The slice of redis-py the booking mutex uses: SET NX EX, GET, and the release script."""

    def __init__(self) -> None:
        self.values: Dict[str, str] = {}
        self.evals: List[tuple] = []

    def set(
        self, key: str, value: str, nx: bool = False, ex: Optional[int] = None
    ) -> Optional[bool]:
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def eval(self, script: str, numkeys: int, key: str, token: str) -> int:
        self.evals.append((key, token))
        if self.values.get(key) == token:
            del self.values[key]
            return 1
        return 0


@pytest.fixture
def lock_redis(monkeypatch: pytest.MonkeyPatch) -> InMemoryLockRedis:
    """Turn the booking mutex on against an in-memory Redis; waits never really sleep."""
    from eventtalent.core import booking_lock

    fake = InMemoryLockRedis()
    monkeypatch.setattr(settings, "booking_lock_enabled", True)
    monkeypatch.setattr(settings, "booking_lock_wait_seconds", 5.0)
    monkeypatch.setattr(booking_lock, "_get_sync_redis", lambda: fake)
    monkeypatch.setattr(booking_lock.time, "sleep", lambda seconds: None)
    return fake
