# eventtalent/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream; the gateway forwards the authenticated
user id in ``X-User-Id``. It is resolved against the local users mirror so
role and active flag are always read from our own table.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...core.config import settings
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from the forwarded identity header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    user = RepositoryFactory.create_user_repository(db).get_by_id(
        x_user_id, load_relationships=False
    )
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown caller",
        )
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    if not current_user.is_admin:
        logger.warning("Admin route denied", extra={"user_id": current_user.id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Bearer check for scheduler-triggered internal endpoints."""
    expected = settings.cron_secret.get_secret_value()
    if not expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="cron endpoint disabled")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid cron token")
