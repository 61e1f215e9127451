"""Database model for persisted platform configuration."""

from sqlalchemy import Column, Text

from ..database import Base
from .types import JSONType, UTCDateTime, now_utc


class PlatformConfig(Base):
    """Key/value configuration stored as JSON for business settings."""

    __tablename__ = "platform_config"

    key = Column(Text, primary_key=True, nullable=False)
    value_json = Column(JSONType, nullable=False)
    updated_by_id = Column(Text, nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=now_utc, onupdate=now_utc)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<PlatformConfig key={self.key}>"


__all__ = ["PlatformConfig"]
