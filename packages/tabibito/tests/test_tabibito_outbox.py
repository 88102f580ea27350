from __future__ import annotations

import pytest

from tabibito.models import OfflinePost, PostDraft
from tabibito.storage.kv import InMemoryKeyValueStore
from tabibito.storage.outbox import OfflineOutbox
from tabibito.storage.repository import StorageKeys


def _draft(content: str = "test") -> PostDraft:
    return PostDraft(user_id="guest_1", content=content)


@pytest.mark.asyncio
async def test_save_offline_post_marks_needs_sync() -> None:
    outbox = OfflineOutbox(InMemoryKeyValueStore())
    saved = await outbox.save_offline_post(_draft())

    assert saved.id.startswith("offline_")
    assert saved.needs_sync is True
    assert saved.created_at
    assert await outbox.get_offline_posts() == [saved]


@pytest.mark.asyncio
async def test_back_to_back_offline_posts_get_distinct_ids() -> None:
    outbox = OfflineOutbox(InMemoryKeyValueStore())
    first = await outbox.save_offline_post(_draft())
    second = await outbox.save_offline_post(_draft())

    pending = await outbox.get_offline_posts()
    assert len(pending) == 2
    assert first.id != second.id


@pytest.mark.asyncio
async def test_offline_posts_are_stored_with_needs_sync_key() -> None:
    store = InMemoryKeyValueStore()
    outbox = OfflineOutbox(store)
    await outbox.save_offline_post(_draft())

    raw = await store.get(StorageKeys.OFFLINE_POSTS)
    assert '"needsSync": true' in raw


@pytest.mark.asyncio
async def test_corrupt_outbox_reads_as_empty() -> None:
    store = InMemoryKeyValueStore()
    await store.set(StorageKeys.OFFLINE_POSTS, "{broken")
    outbox = OfflineOutbox(store)

    assert await outbox.get_offline_posts() == []


@pytest.mark.asyncio
async def test_clear_offline_posts_removes_everything() -> None:
    outbox = OfflineOutbox(InMemoryKeyValueStore())
    await outbox.save_offline_post(_draft("a"))
    await outbox.save_offline_post(_draft("b"))

    await outbox.clear_offline_posts()
    assert await outbox.get_offline_posts() == []


@pytest.mark.asyncio
async def test_acknowledge_removes_only_named_items() -> None:
    outbox = OfflineOutbox(InMemoryKeyValueStore())
    first = await outbox.save_offline_post(_draft("a"))
    second = await outbox.save_offline_post(_draft("b"))

    assert await outbox.acknowledge([first.id, "offline_unknown"]) == 1
    assert [item.id for item in await outbox.get_offline_posts()] == [second.id]
    assert await outbox.acknowledge([]) == 0


@pytest.mark.asyncio
async def test_flush_keeps_failed_items_queued() -> None:
    outbox = OfflineOutbox(InMemoryKeyValueStore())
    await outbox.save_offline_post(_draft("ok-1"))
    failing = await outbox.save_offline_post(_draft("fail"))
    await outbox.save_offline_post(_draft("boom"))
    await outbox.save_offline_post(_draft("ok-2"))

    async def send(offline_post: OfflinePost) -> bool:
        if offline_post.content == "boom":
            raise RuntimeError("transport crashed")
        return offline_post.content != "fail"

    result = await outbox.flush(send)

    assert len(result.sent) == 2
    assert len(result.failed) == 2
    assert result.complete is False
    remaining = [item.content for item in await outbox.get_offline_posts()]
    assert remaining == ["fail", "boom"]
    assert failing.id in result.failed


@pytest.mark.asyncio
async def test_offline_post_converts_back_to_draft() -> None:
    outbox = OfflineOutbox(InMemoryKeyValueStore())
    saved = await outbox.save_offline_post(_draft("hello"))

    draft = saved.to_draft()
    assert draft.content == "hello"
    assert draft.created_at == saved.created_at
    assert "id" not in draft.to_json_dict()
