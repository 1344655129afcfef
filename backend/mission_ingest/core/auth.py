"""Shared-secret bearer authentication for mutating ingest endpoints."""

from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mission_ingest.core.config import settings
from mission_ingest.core.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)
SECURITY_DEP = Depends(security)


def token_matches(presented: str | None, expected: str | None) -> bool:
    """Constant-time comparison that never accepts an empty configured secret."""
    expected_value = (expected or "").strip()
    if not expected_value or not presented:
        return False
    return hmac.compare_digest(presented.strip().encode("utf-8"), expected_value.encode("utf-8"))


async def require_ingest_token(
    credentials: HTTPAuthorizationCredentials | None = SECURITY_DEP,
) -> None:
    """Reject requests whose bearer token does not match ``INGEST_API_KEY``."""
    presented = credentials.credentials if credentials is not None else None
    if not token_matches(presented, settings.ingest_api_key):
        logger.warning(
            "ingest.auth.rejected",
            extra={"has_credentials": credentials is not None},
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
