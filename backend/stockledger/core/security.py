"""Security utilities: JWT tokens, password hashing, and token revocation."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
import jwt
import redis
from jwt.exceptions import PyJWTError

from stockledger.core.config import settings

logger = logging.getLogger(__name__)

BLACKLIST_KEY_PREFIX = "token_blacklist:"

# In-memory blacklist fallback (for when Redis is not configured or unreachable)
_memory_blacklist: Dict[str, datetime] = {}


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hash.

    Uses bcrypt's built-in timing-safe comparison.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError as e:
        logger.warning(f"Password verification error: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token with a unique JTI for revocation support."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token. Returns None for invalid or revoked tokens."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True},
        )
    except PyJWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None

    jti = payload.get("jti")
    if jti and is_token_blacklisted(jti):
        logger.debug(f"Token {jti} is blacklisted")
        return None
    return payload


def _redis_client():
    if not settings.redis_url:
        return None
    return redis.from_url(settings.redis_url, socket_connect_timeout=2)


def blacklist_token(token: str) -> bool:
    """Revoke a token until its natural expiry.

    Stored in Redis with a TTL when configured, otherwise in process memory.
    """
    payload = decode_access_token(token)
    if payload is None or not payload.get("jti"):
        return False

    jti = payload["jti"]
    ttl = max(int(payload.get("exp", 0) - datetime.now(timezone.utc).timestamp()), 60)

    client = _redis_client()
    if client is not None:
        try:
            client.setex(f"{BLACKLIST_KEY_PREFIX}{jti}", ttl, "1")
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis blacklist failed, using in-memory fallback: {e}")

    _memory_blacklist[jti] = datetime.now(timezone.utc) + timedelta(seconds=ttl)
    return True


def is_token_blacklisted(jti: str) -> bool:
    """Check if a token JTI has been revoked."""
    client = _redis_client()
    if client is not None:
        try:
            if client.get(f"{BLACKLIST_KEY_PREFIX}{jti}"):
                return True
        except redis.RedisError as e:
            logger.warning(f"Redis blacklist check failed, using in-memory fallback: {e}")

    expiry = _memory_blacklist.get(jti)
    if expiry is None:
        return False
    if datetime.now(timezone.utc) < expiry:
        return True
    del _memory_blacklist[jti]
    return False
