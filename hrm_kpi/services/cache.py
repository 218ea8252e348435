"""
Cache Service Singleton - HRM KPI Engine
hrm_kpi/services/cache.py

Provides a singleton Redis cache instance with TTL constants and key helpers.
Gracefully handles Redis unavailability.
"""
import logging
import redis
from typing import Optional
from hrm_kpi.services.redis_cache import RedisCache

logger = logging.getLogger(__name__)

# TTL constants (in seconds)
TTL_FUND_SUMMARY = 60          # 1 minute
TTL_MONTHLY_RESULTS = 300      # 5 minutes

FUND_SUMMARY_PREFIX = "hrm:fund_summary:"
MONTHLY_RESULTS_PREFIX = "hrm:monthly_results:"

# Singleton instance
_cache: Optional[RedisCache] = None


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
            _cache.client.ping()  # Test connection
        except (redis.RedisError, ConnectionError) as e:
            logger.warning("Redis unavailable, continuing without cache: %s", e)
            _cache = None
    return _cache


def reset_cache() -> None:
    """
    Reset the cache singleton.

    Useful for testing or when Redis connection needs to be re-established.
    """
    global _cache
    _cache = None


def fund_summary_key(filters_json: str) -> str:
    return f"{FUND_SUMMARY_PREFIX}{filters_json}"


def monthly_results_key(month_key: str) -> str:
    return f"{MONTHLY_RESULTS_PREFIX}{month_key}"


def invalidate_fund_summaries(cache: Optional[RedisCache]) -> None:
    """Drop every cached fund summary; ledger writes change all of them."""
    if cache is None:
        return
    try:
        cache.delete_pattern(f"{FUND_SUMMARY_PREFIX}*")
    except redis.RedisError as e:
        logger.warning("Failed to invalidate fund summaries: %s", e)


def invalidate_monthly_results(cache: Optional[RedisCache], month_key: str) -> None:
    if cache is None:
        return
    try:
        cache.delete(monthly_results_key(month_key))
    except redis.RedisError as e:
        logger.warning("Failed to invalidate monthly results for %s: %s", month_key, e)
