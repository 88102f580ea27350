from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from devkit.timezone import now_jst
from tabibito.auth import AuthService
from tabibito.errors import AuthError, StorageError, ValidationError
from tabibito.ids import new_id
from tabibito.models import OfflinePost, Post, PostDraft, PostType, Region, Visibility
from tabibito.storage.outbox import OfflineOutbox
from tabibito.storage.repository import LocalRepository

logger = logging.getLogger(__name__)


@dataclass
class PostInput:
    content: str
    post_type: PostType = PostType.STATUS
    region: Region = Region.DOOU
    images: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    location_name: str | None = None
    lat: float | None = None
    lng: float | None = None


@dataclass(frozen=True)
class SubmittedPost:
    post: Post
    offline_post: OfflinePost


class PostingService:
    def __init__(
        self,
        auth: AuthService,
        repository: LocalRepository,
        outbox: OfflineOutbox,
        *,
        clock: Callable[[], datetime] = now_jst,
    ) -> None:
        self._auth = auth
        self._repository = repository
        self._outbox = outbox
        self._clock = clock

    async def submit_post(self, post_input: PostInput) -> SubmittedPost:
        """Saves the post locally and queues a copy for the next sync."""
        content = post_input.content.strip()
        if not content:
            raise ValidationError("投稿内容を入力してください。", field="content")

        current_user = await self._auth.get_current_user()
        if current_user is None:
            raise AuthError("ログインが必要です。")
        profile = await self._repository.get_user_profile()
        if profile is None:
            raise StorageError("ユーザープロフィールが見つかりません。")

        timestamp = self._clock().isoformat()
        post = Post(
            id=new_id("post"),
            user_id=current_user.id,
            user=profile,
            content=content,
            images=list(post_input.images),
            post_type=post_input.post_type,
            location_name=(post_input.location_name or "").strip() or None,
            lat=post_input.lat,
            lng=post_input.lng,
            region=post_input.region,
            tags=list(post_input.tags),
            visibility=Visibility.PUBLIC,
            likes_count=0,
            comments_count=0,
            created_at=timestamp,
            updated_at=timestamp,
        )
        await self._repository.save_post(post)
        draft = PostDraft.model_validate(post.model_dump(exclude={"id", "created_at", "saved_at"}))
        offline_post = await self._outbox.save_offline_post(draft)
        logger.info(
            "post_submitted",
            extra={"component": "tabibito", "post_id": post.id, "offline_post_id": offline_post.id},
        )
        return SubmittedPost(post=post, offline_post=offline_post)
