"""Service helpers for persisted platform configuration."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..models.types import now_utc
from ..repositories.factory import RepositoryFactory
from ..schemas.platform_config import SETTLEMENT_CONFIG_KEY, SettlementConfig
from .base import BaseService


class ConfigService(BaseService):
    """
    Business settings (fee rate, currency, disclosure window, payout floor).

    The row is the single source of truth: every operation reads it, and
    updates go through a database transaction like any other entity.
    """

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repo = RepositoryFactory.create_platform_config_repository(db)

    def get_settlement_config(self) -> SettlementConfig:
        config, _ = self.get_settlement_config_with_meta()
        return config

    def get_settlement_config_with_meta(self) -> Tuple[SettlementConfig, Optional[datetime]]:
        record = self.repo.get_by_key(SETTLEMENT_CONFIG_KEY)
        if record is None or not record.value_json:
            return SettlementConfig(), None
        return SettlementConfig.model_validate(record.value_json), record.updated_at

    @BaseService.measure_operation("ensure_settlement_config")
    def ensure_settlement_config(self) -> SettlementConfig:
        """Seed the defaults at startup when the row is missing."""
        with self.transaction():
            record = self.repo.get_by_key(SETTLEMENT_CONFIG_KEY, for_update=True)
            if record is not None and record.value_json:
                return SettlementConfig.model_validate(record.value_json)
            defaults = SettlementConfig()
            self.repo.upsert(
                key=SETTLEMENT_CONFIG_KEY,
                value=defaults.model_dump(mode="json"),
                updated_at=now_utc(),
            )
            self.logger.info("Seeded default settlement config")
            return defaults

    @BaseService.measure_operation("update_settlement_config")
    def update_settlement_config(
        self, changes: Dict[str, Any], updated_by_id: Optional[str] = None
    ) -> Tuple[SettlementConfig, datetime]:
        """Merge ``changes`` over the current settings, validate and persist."""
        with self.transaction():
            current = self.get_settlement_config()
            merged = {**current.model_dump(mode="json"), **changes}
            try:
                validated = SettlementConfig.model_validate(merged)
            except ValidationError as exc:
                raise ValidationException(
                    "Invalid settlement configuration",
                    details={"errors": exc.errors(include_url=False, include_context=False)},
                ) from exc
            now = now_utc()
            record = self.repo.upsert(
                key=SETTLEMENT_CONFIG_KEY,
                value=validated.model_dump(mode="json"),
                updated_at=now,
                updated_by_id=updated_by_id,
            )
            self.logger.info(
                "Settlement config updated",
                extra={"updated_by_id": updated_by_id, "fields": sorted(changes)},
            )
            return validated, record.updated_at or now
