# eventtalent/routes/__init__.py
"""HTTP route modules. Versioned routers live in ``routes.v1``."""
