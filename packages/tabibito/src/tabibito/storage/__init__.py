from tabibito.storage.kv import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    SafeKeyValueStore,
    create_key_value_store,
)
from tabibito.storage.outbox import FlushResult, OfflineOutbox
from tabibito.storage.repository import LocalRepository, StorageKeys, filter_timeline

__all__ = [
    "FlushResult",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "LocalRepository",
    "OfflineOutbox",
    "RedisKeyValueStore",
    "SafeKeyValueStore",
    "StorageKeys",
    "create_key_value_store",
    "filter_timeline",
]
