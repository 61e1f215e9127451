# eventtalent/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import admin, bookings, internal, payments, prometheus

__all__ = ["admin", "bookings", "internal", "payments", "prometheus"]
