"""
Services module for the HRM KPI Engine.
"""

from hrm_kpi.services.cache import get_cache
from hrm_kpi.services.redis_cache import RedisCache
from hrm_kpi.services.snowflake import get_snowflake_connection

__all__ = [
    "get_cache",
    "RedisCache",
    "get_snowflake_connection",
]
