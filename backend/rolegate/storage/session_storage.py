"""
Key/value storage tiers for per-session and durable authorization state.

Both tiers expose the same three string operations (get/set/remove). The
session tier expires with the session TTL; the durable tier does not.
"""
from typing import Dict, Optional

import redis

from rolegate.core.config import settings
from rolegate.permissions.exceptions import StorageError


class KeyValueStorage:
    """Synchronous string storage."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items


class RedisStorage(KeyValueStorage):
    """Redis-backed storage scoped by a key prefix.

    Keys: `{prefix}{key}`. When `ttl_seconds` is set every write refreshes
    the expiry.
    """

    def __init__(self, client: redis.Redis, prefix: str, ttl_seconds: Optional[int] = None):
        self.client = client
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self.client.get(self._key(key))
        except redis.RedisError as e:
            raise StorageError(f"redis get failed for {key}") from e

    def set_item(self, key: str, value: str) -> None:
        try:
            if self.ttl_seconds:
                self.client.set(self._key(key), value, ex=self.ttl_seconds)
            else:
                self.client.set(self._key(key), value)
        except redis.RedisError as e:
            raise StorageError(f"redis set failed for {key}") from e

    def remove_item(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            raise StorageError(f"redis delete failed for {key}") from e


def create_redis_client() -> redis.Redis:
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD or None,
        decode_responses=True,
    )


def redis_storage_factory(client: redis.Redis):
    """Build a `(session_id, tier) -> KeyValueStorage` factory on one client.

    The durable tier outlives the session TTL but expires with the bearer
    token, after which its session id is unreachable.
    """
    def factory(session_id: str, tier: str) -> KeyValueStorage:
        if tier == "durable":
            return RedisStorage(
                client,
                prefix=f"rolegate:durable:{session_id}:",
                ttl_seconds=settings.JWT_EXPIRATION_HOURS * 60 * 60,
            )
        return RedisStorage(
            client,
            prefix=f"rolegate:session:{session_id}:",
            ttl_seconds=settings.SESSION_TTL_SECONDS,
        )

    return factory


def memory_storage_factory():
    def factory(session_id: str, tier: str) -> KeyValueStorage:
        return MemoryStorage()

    return factory
