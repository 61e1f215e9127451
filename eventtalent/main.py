# eventtalent/main.py
"""
EventTalent booking engine API.

Mounts the versioned routers under /api/v1, converts domain exceptions to
JSON responses and seeds the persisted settlement configuration at startup.
"""

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Dict

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import is_running_tests, settings
from .core.exceptions import DomainException
from .database import get_db_session
from .routes.v1 import admin as admin_v1
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import internal as internal_v1
from .routes.v1 import payments as payments_v1
from .routes.v1 import prometheus as prometheus_v1
from .services.config_service import ConfigService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

BRAND_NAME = "EventTalent"


def _seed_settlement_config() -> None:
    with get_db_session() as db:
        ConfigService(db).ensure_settlement_config()


def _validate_startup_config() -> None:
    if not settings.is_production:
        return
    if not settings.paystack_secret_key.get_secret_value():
        raise RuntimeError("PAYSTACK_SECRET_KEY must be set in production")
    if not settings.cron_secret.get_secret_value():
        logger.warning("CRON_SECRET is empty; internal sweep endpoints will reject every call")
    if settings.use_fake_gateways:
        raise RuntimeError("USE_FAKE_GATEWAYS cannot be enabled in production")


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")

    _validate_startup_config()
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    await asyncio.to_thread(_seed_settlement_config)

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=f"{BRAND_NAME} API",
    description="Booking, escrow, dispute and review engine for event talent",
    version="1.0.0",
    lifespan=app_lifespan,
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render any uncaught domain exception with its mapped status code."""
    http_exc = exc.to_http_exception()
    if http_exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={"code": exc.code, "details": exc.details},
        )
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


# API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(admin_v1.router, prefix="/admin")
api_v1.include_router(internal_v1.router, prefix="/internal")

app.include_router(api_v1)
app.include_router(prometheus_v1.router)


@app.get("/health", include_in_schema=False)
def health_check() -> Dict[str, str]:
    return {"status": "healthy", "service": f"{BRAND_NAME.lower()}-api"}
