from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Protocol

from devkit.config import AppSettings
from devkit.redis import create_redis_client

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def remove(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def multi_remove(self, keys: list[str]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class RedisLikeKeyValueClient(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> bool | None: ...

    async def delete(self, *keys: str) -> int: ...

    async def close(self) -> None: ...


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._items.get(key)

    async def set(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove(self, key: str) -> None:
        self._items.pop(key, None)

    async def multi_remove(self, keys: list[str]) -> None:
        for key in keys:
            self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class JsonFileKeyValueStore(KeyValueStore):
    """All keys in one JSON object on disk, rewritten on every change."""

    def __init__(self, file_path: str) -> None:
        self._file = Path(file_path)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._read_all().get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            items = self._read_all()
            items[key] = value
            self._write_all(items)

    async def remove(self, key: str) -> None:
        await self.multi_remove([key])

    async def multi_remove(self, keys: list[str]) -> None:
        async with self._lock:
            items = self._read_all()
            removed = [key for key in keys if items.pop(key, None) is not None]
            if removed:
                self._write_all(items)

    def _read_all(self) -> dict[str, str]:
        if not self._file.exists():
            return {}
        raw = self._file.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        return json.loads(raw)

    def _write_all(self, items: dict[str, str]) -> None:
        self._file.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._file.with_suffix(self._file.suffix + ".tmp")
        tmp.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self._file)


class RedisKeyValueStore(KeyValueStore):
    def __init__(self, client: RedisLikeKeyValueClient, namespace: str = "tabibito") -> None:
        self._client = client
        self._namespace = namespace

    async def get(self, key: str) -> str | None:
        return await self._client.get(self._redis_key(key))

    async def set(self, key: str, value: str) -> None:
        await self._client.set(self._redis_key(key), value)

    async def remove(self, key: str) -> None:
        await self._client.delete(self._redis_key(key))

    async def multi_remove(self, keys: list[str]) -> None:
        if not keys:
            return
        await self._client.delete(*(self._redis_key(key) for key in keys))

    async def close(self) -> None:
        await self._client.close()

    def _redis_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"


class SafeKeyValueStore(KeyValueStore):
    """Never raises: backend failures are logged, reads degrade to ``None`` and writes become no-ops."""

    def __init__(self, backend: KeyValueStore) -> None:
        self._backend = backend

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    async def get(self, key: str) -> str | None:
        try:
            return await self._backend.get(key)
        except Exception:
            logger.exception("kv_get_failed", extra={"component": "tabibito", "key": key})
            return None

    async def set(self, key: str, value: str) -> None:
        try:
            await self._backend.set(key, value)
        except Exception:
            logger.exception("kv_set_failed", extra={"component": "tabibito", "key": key})

    async def remove(self, key: str) -> None:
        try:
            await self._backend.remove(key)
        except Exception:
            logger.exception("kv_remove_failed", extra={"component": "tabibito", "key": key})

    async def multi_remove(self, keys: list[str]) -> None:
        try:
            await self._backend.multi_remove(keys)
        except Exception:
            logger.exception("kv_multi_remove_failed", extra={"component": "tabibito", "keys": keys})

    async def close(self) -> None:
        await self._backend.close()


def create_key_value_store(settings: AppSettings) -> KeyValueStore:
    backend_name = settings.STORAGE_BACKEND.lower()
    if backend_name == "redis":
        client = create_redis_client(settings.REDIS_URL)
        if client is None:
            raise RuntimeError("REDIS_URL is required when STORAGE_BACKEND=redis")
        backend: KeyValueStore = RedisKeyValueStore(client, namespace=settings.APP_NAME)
    elif backend_name == "file":
        backend = JsonFileKeyValueStore(settings.STORAGE_FILE_PATH)
    elif backend_name == "memory":
        backend = InMemoryKeyValueStore()
    else:
        raise RuntimeError(f"unsupported STORAGE_BACKEND '{settings.STORAGE_BACKEND}', supported: file, memory, redis")
    logger.info("kv_backend_selected", extra={"component": "tabibito", "backend": backend_name})
    return SafeKeyValueStore(backend)
