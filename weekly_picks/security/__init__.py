"""Security module for the weekly picks service."""

from .auth import AdminIdentity, RequireAdmin, hash_token, require_admin
from .rate_limiter import check_rate_limit, rate_limiter

__all__ = ["AdminIdentity", "RequireAdmin", "hash_token", "require_admin", "check_rate_limit", "rate_limiter"]
