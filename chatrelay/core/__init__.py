"""chatrelay core - validation, retry, streaming and secret storage primitives."""

from chatrelay.core.kv_store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore
from chatrelay.core.params import ValidatedOptions, validate_parameters
from chatrelay.core.retry import RetryEngine, RetryMatrix

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "ValidatedOptions",
    "validate_parameters",
    "RetryEngine",
    "RetryMatrix",
]
