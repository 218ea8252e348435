import redis
from typing import List, Optional, TypeVar, Type
from pydantic import BaseModel, TypeAdapter
from hrm_kpi.config import settings

T = TypeVar("T", bound=BaseModel)


class RedisCache:
    def __init__(self, url: Optional[str] = None):
        self.client = redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
        )

    def get(self, key: str, model: Type[T]) -> Optional[T]:
        """Get cached item and deserialize to Pydantic model."""
        data = self.client.get(key)
        if data:
            return model.model_validate_json(data)
        return None

    def get_list(self, key: str, model: Type[T]) -> Optional[List[T]]:
        """Get a cached JSON array of models."""
        data = self.client.get(key)
        if data:
            return TypeAdapter(List[model]).validate_json(data)
        return None

    def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Cache Pydantic model with TTL."""
        self.client.setex(
            key,
            ttl_seconds,
            value.model_dump_json(),
        )

    def set_list(self, key: str, values: List[BaseModel], ttl_seconds: int) -> None:
        payload = "[" + ",".join(v.model_dump_json() for v in values) + "]"
        self.client.setex(key, ttl_seconds, payload)

    def delete(self, key: str) -> None:
        """Invalidate single cache entry."""
        self.client.delete(key)

    def delete_pattern(self, pattern: str) -> None:
        """Invalidate all keys matching pattern."""
        for key in self.client.scan_iter(match=pattern):
            self.client.delete(key)

    def lock(self, name: str, timeout: float, blocking_timeout: float):
        """Distributed lock (redis-py Lock) for cross-process period serialization."""
        return self.client.lock(name, timeout=timeout, blocking_timeout=blocking_timeout)
