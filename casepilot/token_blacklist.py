"""
Token Blacklist Management
==========================

Revoked access tokens are recorded in the token_blacklist table until their
natural expiry. When REDIS_URL is configured, revocations are mirrored to
Redis so lookups on the hot path skip the database.
"""

import logging
from datetime import datetime
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import TokenBlacklist

logger = logging.getLogger(__name__)

BLACKLIST_PREFIX = "token:blacklist:"

_redis_client: Optional[Redis] = None
_redis_url: Optional[str] = None


def get_redis_client() -> Optional[Redis]:
    """Get Redis client (singleton), or None when Redis is not configured or unreachable."""
    global _redis_client, _redis_url

    url = get_settings().redis_url
    if not url:
        return None

    if _redis_client is None or _redis_url != url:
        try:
            client = Redis.from_url(url, decode_responses=True)
            client.ping()
        except RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Using database only.")
            return None
        _redis_client = client
        _redis_url = url

    return _redis_client


def _mirror_to_redis(jti: str, expires_at: datetime, token_type: str) -> bool:
    redis = get_redis_client()
    if not redis:
        return False
    try:
        ttl_seconds = max(int((expires_at - datetime.utcnow()).total_seconds()), 60)
        redis.setex(f"{BLACKLIST_PREFIX}{jti}", ttl_seconds, token_type)
        return True
    except RedisError as e:
        logger.warning(f"Redis blacklist add failed: {e}")
        return False


def add_to_blacklist(
    db: Session,
    jti: str,
    principal_id: str,
    expires_at: datetime,
    token_type: str = "access",
) -> None:
    """
    Revoke a token by its JWT ID.

    Args:
        db: SQLAlchemy session (committed here)
        jti: JWT ID (unique identifier)
        principal_id: Owner of the token
        expires_at: When the token would naturally expire
        token_type: Token type claim
    """
    if db.get(TokenBlacklist, jti) is None:
        db.add(TokenBlacklist(
            jti=jti,
            principal_id=principal_id,
            token_type=token_type,
            expires_at=expires_at,
        ))
        db.commit()
    _mirror_to_redis(jti, expires_at, token_type)


def is_blacklisted(db: Session, jti: str) -> bool:
    """Check Redis first when available, then the database."""
    redis = get_redis_client()
    if redis:
        try:
            if redis.exists(f"{BLACKLIST_PREFIX}{jti}"):
                return True
        except RedisError as e:
            logger.warning(f"Redis blacklist check failed: {e}")

    return db.get(TokenBlacklist, jti) is not None


def remove_expired_blacklist_entries(db: Session) -> int:
    """
    Clean up expired blacklist entries from the database.

    Returns:
        Number of entries removed
    """
    result = db.query(TokenBlacklist).filter(
        TokenBlacklist.expires_at < datetime.utcnow()
    ).delete(synchronize_session=False)
    db.commit()
    return result


def sync_to_redis(db: Session, max_entries: int = 10000) -> int:
    """Copy active blacklist entries to Redis (after a Redis restart)."""
    if not get_redis_client():
        return 0

    entries = db.query(TokenBlacklist).filter(
        TokenBlacklist.expires_at > datetime.utcnow()
    ).limit(max_entries).all()

    count = sum(1 for entry in entries if _mirror_to_redis(entry.jti, entry.expires_at, entry.token_type))
    logger.info(f"Synced {count} blacklist entries to Redis")
    return count
