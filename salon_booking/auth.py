import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _check_bearer(
    credentials: Optional[HTTPAuthorizationCredentials], expected: Optional[str], name: str
) -> None:
    if not expected:
        logger.error(f"❌ {name} not configured")
        raise HTTPException(status_code=503, detail=f"{name} is not configured on this server")

    if not credentials:
        logger.warning(f"⚠️ Missing bearer token for {name} protected endpoint")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    if not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        logger.warning(f"⚠️ Invalid bearer token for {name} protected endpoint")
        raise HTTPException(status_code=401, detail="Invalid token")


async def require_admin_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Salon staff/admin endpoints: schedule changes and status transitions"""
    _check_bearer(credentials, config.ADMIN_API_TOKEN, "ADMIN_API_TOKEN")


async def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Maintenance endpoints triggered by the scheduler"""
    _check_bearer(credentials, config.CRON_SECRET, "CRON_SECRET")


def has_admin_token(credentials: Optional[HTTPAuthorizationCredentials]) -> bool:
    """True for a valid admin bearer token; never raises, for endpoints with a second way in"""
    expected = config.ADMIN_API_TOKEN
    if not expected or not credentials:
        return False
    return secrets.compare_digest(credentials.credentials.encode(), expected.encode())
