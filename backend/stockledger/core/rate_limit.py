"""Shared rate limiter instances for use across route files."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from stockledger.core.config import settings
from stockledger.core.security import decode_access_token

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def get_user_or_ip(request: Request) -> str:
    """Rate limit by user ID if authenticated, else by IP."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        payload = decode_access_token(auth.split(" ", 1)[1])
        if payload and payload.get("sub"):
            return f"user:{payload['sub']}"
    return get_remote_address(request)


# Movement submissions are limited per actor so one client cannot starve others
user_limiter = Limiter(key_func=get_user_or_ip, enabled=settings.rate_limit_enabled)
