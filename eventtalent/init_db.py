# eventtalent/init_db.py
"""Create all tables and seed the settlement configuration row."""

from .database import Base, engine, get_db_session
from . import models  # noqa: F401  registers tables on Base.metadata
from .services.config_service import ConfigService


def init_db() -> None:
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        config = ConfigService(db).ensure_settlement_config()
    print(f"Tables created; settlement config fee rate {config.platform_fee_rate}")


if __name__ == "__main__":
    init_db()
