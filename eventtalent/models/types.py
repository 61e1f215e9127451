# eventtalent/models/types.py
"""
Custom SQLAlchemy types that work across different database backends.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Numeric, String, Text, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

from eventtalent.core.constants import MONEY_QUANTUM

if TYPE_CHECKING:
    from sqlalchemy.sql.type_api import TypeDecorator as _TypeDecorator

    TypeDecoratorProtocol = _TypeDecorator[Any]
else:
    TypeDecoratorProtocol = TypeDecorator

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecoratorProtocol):
    """
    Timezone-aware timestamp normalised to UTC.

    SQLite drops tzinfo on storage, so values are converted to UTC on the way
    in and re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Money(TypeDecoratorProtocol):
    """
    Two-decimal money amount, always surfaced as ``Decimal``.

    PostgreSQL stores NUMERIC(12, 2). SQLite has no decimal type, so the
    value is stored as its canonical string to avoid float rounding.
    """

    impl = Numeric(12, 2)
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(32))
        return dialect.type_descriptor(Numeric(12, 2, asdecimal=True))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        amount = Decimal(str(value)).quantize(MONEY_QUANTUM)
        if dialect.name == "sqlite":
            return str(amount)
        return amount

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        return Decimal(str(value)).quantize(MONEY_QUANTUM)
