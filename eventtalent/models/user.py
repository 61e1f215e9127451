# eventtalent/models/user.py
"""
User mirror and public profile models.

Identity is owned by the upstream auth service. The ``users`` table is a
local mirror of the fields the booking engine needs (role, active flag,
contact and payout handle). ``user_profiles`` holds the aggregate rating
the rating aggregator writes.

Classes:
    User: Mirrored identity record (organizer, talent or admin)
    UserProfile: One-to-one public profile with aggregate rating
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import RoleName
from ..database import Base
from .types import UTCDateTime, now_utc


class User(Base):
    """
    Mirrored identity record.

    Attributes:
        id: ULID primary key shared with the identity service
        email: Contact address used by the notification service
        name: Display name
        role: One of RoleName (organizer, talent, admin)
        is_active: Inactive users cannot be booked or book
        payout_account_handle: Gateway-side account handle (talent only)
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(120), nullable=False)
    role = Column(String(20), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    payout_account_handle = Column(String(255), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=now_utc)

    profile = relationship("UserProfile", back_populates="user", uselist=False)

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    @property
    def is_organizer(self) -> bool:
        return self.role == RoleName.ORGANIZER.value

    @property
    def is_talent(self) -> bool:
        return self.role == RoleName.TALENT.value

    def __repr__(self) -> str:
        return f"<User {self.id} role={self.role}>"


class UserProfile(Base):
    """Public profile; ``average_rating`` is NULL until a review becomes visible."""

    __tablename__ = "user_profiles"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(
        String(26), ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    average_rating = Column(Numeric(3, 2, asdecimal=True), nullable=True)
    total_reviews = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime, nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=now_utc)

    user = relationship("User", back_populates="profile")

    def __repr__(self) -> str:
        return f"<UserProfile user={self.user_id} avg={self.average_rating} n={self.total_reviews}>"
