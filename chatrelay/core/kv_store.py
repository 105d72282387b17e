"""Key-value persistence backends for secrets and model configuration."""
import logging
import threading
from typing import Dict, List, Optional, Protocol, runtime_checkable

import redis

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Plain string keys to string blobs. Writes are keyed and independent."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def has(self, key: str) -> bool:
        ...

    def keys(self, prefix: str = "") -> List[str]:
        ...


class MemoryKeyValueStore:
    """In-process store, the default for tests and single-session use."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]


class RedisKeyValueStore:
    """Redis-backed store.

    Keys are namespaced under ``key_prefix`` so several clients can share
    one Redis database.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: str = "chatrelay",
        client: Optional[redis.Redis] = None,
    ):
        """
        Args:
            redis_url: Redis connection URL (ignored when client is given)
            key_prefix: Namespace for every key
            client: Pre-built Redis client
        """
        if client is None and not redis_url:
            raise ValueError("Either redis_url or client is required")
        self.key_prefix = key_prefix
        self.client = client if client is not None else redis.from_url(redis_url, decode_responses=True)
        if client is None:
            logger.info(f"Key-value store using Redis: {redis_url}")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:kv:{key}"

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def has(self, key: str) -> bool:
        return bool(self.client.exists(self._key(key)))

    def keys(self, prefix: str = "") -> List[str]:
        namespace = self._key("")
        found = []
        for raw in self.client.scan_iter(match=f"{namespace}{prefix}*"):
            name = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            found.append(name[len(namespace):])
        return found
