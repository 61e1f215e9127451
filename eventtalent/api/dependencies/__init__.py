# eventtalent/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_active_user, get_current_user, require_admin, verify_cron_secret
from .database import get_db
from .services import (
    get_booking_service,
    get_config_service,
    get_dispute_service,
    get_escrow_service,
    get_notification_service,
    get_review_service,
)

__all__ = [
    # Auth
    "get_current_user",
    "get_current_active_user",
    "require_admin",
    "verify_cron_secret",
    # Database
    "get_db",
    # Services
    "get_booking_service",
    "get_config_service",
    "get_dispute_service",
    "get_escrow_service",
    "get_notification_service",
    "get_review_service",
]
