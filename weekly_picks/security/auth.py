"""Authentication and authorization for the admin endpoints."""

import hashlib
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from weekly_picks.database.connection import get_db
from weekly_picks.database.models import Profile

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
security = HTTPBearer(auto_error=False)


@dataclass
class AdminIdentity:
    """Authenticated admin, as seen by the import endpoints."""
    user_id: uuid.UUID
    display_name: Optional[str] = None


def hash_token(token: str) -> str:
    """SHA-256 hex digest under which API tokens are stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _presented_token(
    credentials: Optional[HTTPAuthorizationCredentials],
    x_api_key: Optional[str],
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    if x_api_key:
        return x_api_key
    return None


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db),
) -> AdminIdentity:
    """Resolve the caller's profile and insist on the admin flag.

    Raises:
        HTTPException: 401 without a known token, 403 for non-admin profiles.
    """
    token = _presented_token(credentials, x_api_key)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide a Bearer token or X-API-Key header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    profile = db.query(Profile).filter(Profile.api_token_hash == hash_token(token)).first()
    if profile is None:
        logger.warning(f"Invalid token attempt: {token[:4]}...")
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not profile.is_admin:
        logger.warning(f"Non-admin profile {profile.user_id} denied admin access")
        raise HTTPException(status_code=403, detail="Admin privileges required")

    return AdminIdentity(user_id=profile.user_id, display_name=profile.display_name)


# Convenience dependency
RequireAdmin = Depends(require_admin)
