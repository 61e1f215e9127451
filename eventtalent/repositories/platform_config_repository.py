"""Repository for platform configuration records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, cast

from sqlalchemy.orm import Session

from ..models.platform_config import PlatformConfig


class PlatformConfigRepository:
    """Data access helper for platform configuration key/value records."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_key(self, key: str, for_update: bool = False) -> Optional[PlatformConfig]:
        query = self.db.query(PlatformConfig).filter(PlatformConfig.key == key)
        if for_update:
            query = query.with_for_update()
        return cast(Optional[PlatformConfig], query.first())

    def upsert(
        self,
        *,
        key: str,
        value: Mapping[str, Any],
        updated_at: datetime,
        updated_by_id: Optional[str] = None,
    ) -> PlatformConfig:
        record = self.get_by_key(key, for_update=True)
        if record is None:
            record = PlatformConfig(
                key=key, value_json=dict(value), updated_at=updated_at, updated_by_id=updated_by_id
            )
            self.db.add(record)
        else:
            record.value_json = dict(value)
            record.updated_at = updated_at
            record.updated_by_id = updated_by_id
        self.db.flush()
        return record


__all__ = ["PlatformConfigRepository"]
