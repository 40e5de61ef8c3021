"""
Cache Service Singleton - Judging Leaderboard Engine
judging/services/cache.py

Provides a singleton Redis cache instance, TTL constants and key helpers.
Gracefully handles Redis unavailability.
"""
import logging
import redis
from typing import Optional
from judging.services.redis_cache import RedisCache
from judging.config import settings

logger = logging.getLogger(__name__)

# TTL constants (in seconds)
TTL_LEADERBOARD = settings.CACHE_TTL_LEADERBOARD  # 5 minutes by default
TTL_AGGREGATE = settings.CACHE_TTL_AGGREGATE      # 2 minutes by default

KEY_PREFIX = "judging"

# Singleton instance
_cache: Optional[RedisCache] = None


def leaderboard_key(event_id: str) -> str:
    return f"{KEY_PREFIX}:leaderboard:{event_id}"


def aggregate_key(event_id: str, submission_id: str) -> str:
    return f"{KEY_PREFIX}:aggregate:{event_id}:{submission_id}"


def event_aggregates_pattern(event_id: str) -> str:
    return f"{KEY_PREFIX}:aggregate:{event_id}:*"


def get_cache() -> Optional[RedisCache]:
    """
    Get or create Redis cache instance.

    Returns:
        RedisCache instance if Redis is available, None otherwise.

    Note:
        Returns None if Redis is unavailable, allowing the engine
        to continue functioning without caching (graceful degradation).
    """
    global _cache
    if _cache is None:
        try:
            _cache = RedisCache()
            _cache.ping()  # Test connection
        except (redis.RedisError, ConnectionError) as e:
            logger.warning(f"Redis unavailable, caching disabled: {e}")
            _cache = None
    return _cache


def reset_cache() -> None:
    """
    Reset the cache singleton.

    Useful for testing or when Redis connection needs to be re-established.
    """
    global _cache
    _cache = None
