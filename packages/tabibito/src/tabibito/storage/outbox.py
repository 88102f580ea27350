from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from pydantic import TypeAdapter

from devkit.timezone import now_jst_iso
from tabibito.ids import new_id
from tabibito.models import OfflinePost, PostDraft
from tabibito.storage.kv import KeyValueStore
from tabibito.storage.repository import JsonRecords, KeyLocks, StorageKeys

logger = logging.getLogger(__name__)

_OFFLINE_POSTS = TypeAdapter(list[OfflinePost])


@dataclass
class FlushResult:
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class OfflineOutbox:
    """Posts written while offline, kept until each one is acknowledged."""

    def __init__(self, store: KeyValueStore, locks: KeyLocks | None = None) -> None:
        self._records = JsonRecords(store, locks)

    async def save_offline_post(self, draft: PostDraft) -> OfflinePost:
        payload = draft.model_dump(exclude_none=True)
        payload.update(id=new_id("offline"), created_at=now_jst_iso(), needs_sync=True)
        offline_post = OfflinePost.model_validate(payload)
        async with self._records.locks(StorageKeys.OFFLINE_POSTS):
            pending = await self.get_offline_posts()
            pending.append(offline_post)
            await self._write(pending)
        logger.info("offline_post_queued", extra={"component": "tabibito", "post_id": offline_post.id})
        return offline_post

    async def get_offline_posts(self) -> list[OfflinePost]:
        return await self._records.read(StorageKeys.OFFLINE_POSTS, _OFFLINE_POSTS.validate_python, list)

    async def clear_offline_posts(self) -> None:
        async with self._records.locks(StorageKeys.OFFLINE_POSTS):
            await self._records.remove(StorageKeys.OFFLINE_POSTS)

    async def acknowledge(self, post_ids: Iterable[str]) -> int:
        acked = set(post_ids)
        if not acked:
            return 0
        async with self._records.locks(StorageKeys.OFFLINE_POSTS):
            pending = await self.get_offline_posts()
            remaining = [item for item in pending if item.id not in acked]
            removed = len(pending) - len(remaining)
            if removed:
                await self._write(remaining)
        return removed

    async def flush(self, send: Callable[[OfflinePost], Awaitable[bool]]) -> FlushResult:
        """Sends pending posts in order and acknowledges each success as soon as it lands."""
        result = FlushResult()
        for offline_post in await self.get_offline_posts():
            try:
                delivered = await send(offline_post)
            except Exception:
                logger.exception(
                    "offline_post_send_failed",
                    extra={"component": "tabibito", "post_id": offline_post.id},
                )
                delivered = False
            if not delivered:
                result.failed.append(offline_post.id)
                continue
            await self.acknowledge([offline_post.id])
            result.sent.append(offline_post.id)
        logger.info(
            "offline_flush_finished",
            extra={"component": "tabibito", "sent": len(result.sent), "failed": len(result.failed)},
        )
        return result

    async def _write(self, posts: list[OfflinePost]) -> None:
        await self._records.write(StorageKeys.OFFLINE_POSTS, [item.to_json_dict() for item in posts])
