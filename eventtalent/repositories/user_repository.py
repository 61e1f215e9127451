# eventtalent/repositories/user_repository.py
"""User mirror and profile repository."""

from datetime import datetime
from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import RoleName
from ..models.user import User, UserProfile
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_active(self, user_id: str) -> Optional[User]:
        return (
            self.db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
        )

    def list_active_admins(self) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.role == RoleName.ADMIN.value, User.is_active.is_(True))
            .order_by(User.id.asc())
            .all()
        )

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self.db.query(UserProfile).filter(UserProfile.user_id == user_id).first()

    def upsert_rating(
        self,
        user_id: str,
        *,
        average_rating: Optional[Decimal],
        total_reviews: int,
        updated_at: datetime,
    ) -> UserProfile:
        profile = self.get_profile(user_id)
        if profile is None:
            profile = UserProfile(user_id=user_id)
            self.db.add(profile)
        profile.average_rating = average_rating
        profile.total_reviews = total_reviews
        profile.updated_at = updated_at
        self.db.flush()
        return profile
