"""
Security utilities for the metrics refresh trigger
"""

import hmac
import logging
from typing import Optional

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


def verify_bearer_token(authorization: Optional[str], expected_secret: Optional[str]) -> bool:
    """
    Check an Authorization header against the configured cron secret.

    Fails closed: a missing configured secret rejects every request.
    """
    if not expected_secret:
        logger.error("CRON_SECRET is not configured; rejecting refresh trigger")
        return False

    if not authorization:
        return False

    expected = f"Bearer {expected_secret}"
    return hmac.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8"))


def create_credentials_exception() -> HTTPException:
    """Create credentials exception"""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
