"""Redis client for sessions, wallet challenges and rate limiting"""
import redis
import logging
from typing import Optional
from app.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5
        )
    return _client


# Session TTL (30 days)
SESSION_TTL = 30 * 24 * 60 * 60


def set_session(session_id: str, merchant_id: str) -> None:
    """Store session in Redis"""
    key = f"session:{session_id}"
    get_redis_client().setex(key, SESSION_TTL, merchant_id)


def get_session(session_id: str) -> Optional[str]:
    """Get merchant_id from session"""
    key = f"session:{session_id}"
    return get_redis_client().get(key)


def delete_session(session_id: str) -> None:
    """Delete session from Redis"""
    key = f"session:{session_id}"
    get_redis_client().delete(key)


def set_wallet_challenge(merchant_id: str, message: str) -> None:
    """Store the outstanding wallet challenge, replacing any earlier one"""
    key = f"wallet_challenge:{merchant_id}"
    get_redis_client().setex(key, settings.WALLET_CHALLENGE_TTL, message)


def consume_wallet_challenge(merchant_id: str) -> Optional[str]:
    """Atomically read and delete the outstanding wallet challenge

    A challenge can be consumed at most once, whatever the verification outcome.
    """
    key = f"wallet_challenge:{merchant_id}"
    pipe = get_redis_client().pipeline(transaction=True)
    pipe.get(key)
    pipe.delete(key)
    message, _ = pipe.execute()
    return message


def increment_rate_limit(identifier: str, window: int) -> int:
    """Increment fixed-window counter and return the current count"""
    key = f"ratelimit:{identifier}"
    client = get_redis_client()
    count = client.incr(key)
    if count == 1:
        client.expire(key, window)
    return count


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit

    Args:
        identifier: Client identifier (session ID or IP)
        strict: If True, use the stricter limit for state-changing operations

    Returns:
        True if within limit, False if exceeded
    """
    limit = settings.RATE_LIMIT_STRICT_REQUESTS if strict else settings.RATE_LIMIT_REQUESTS
    suffix = ":strict" if strict else ""
    try:
        count = increment_rate_limit(f"{identifier}{suffix}", settings.RATE_LIMIT_WINDOW)
    except redis.RedisError as e:
        # Fail open when Redis is unavailable
        logger.warning(f"Rate limit check failed for {identifier}: {e}")
        return True
    return count <= limit
