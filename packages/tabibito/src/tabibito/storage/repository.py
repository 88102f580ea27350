from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, TypeVar

from pydantic import TypeAdapter

from devkit.timezone import now_jst_iso
from tabibito.errors import StorageError
from tabibito.models import Post, Region, SavedTrack, Spot, User, UserSettings
from tabibito.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_POSTS = TypeAdapter(list[Post])
_SPOTS = TypeAdapter(list[Spot])
_TRACKS = TypeAdapter(dict[str, SavedTrack])
_USER_IDS = TypeAdapter(list[str])


class StorageKeys:
    USER_PROFILE = "user_profile"
    SAVED_TRACKS = "saved_tracks"
    SAVED_POSTS = "saved_posts"
    FOLLOWING_USERS = "following_users"
    USER_SETTINGS = "user_settings"
    OFFLINE_POSTS = "offline_posts"
    FAVORITE_SPOTS = "favorite_spots"
    AUTH_USER = "auth_user"
    AUTH_SESSION = "auth_session"
    AUTO_LOGIN_ENABLED = "auto_login_enabled"

    CONTENT = (
        USER_PROFILE,
        SAVED_TRACKS,
        SAVED_POSTS,
        FOLLOWING_USERS,
        OFFLINE_POSTS,
        FAVORITE_SPOTS,
    )


class KeyLocks:
    """One asyncio.Lock per storage key so read-modify-write cycles never interleave."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __call__(self, key: str) -> asyncio.Lock:
        return self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """Acquires several key locks in sorted order."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self._locks[key])
            yield


class JsonRecords:
    """JSON encode/decode over a KeyValueStore with degrade-on-read semantics."""

    def __init__(self, store: KeyValueStore, locks: KeyLocks | None = None) -> None:
        self._store = store
        self.locks = locks or KeyLocks()

    @property
    def store(self) -> KeyValueStore:
        return self._store

    async def read(self, key: str, parse: Callable[[Any], T], default: Callable[[], T]) -> T:
        raw = await self._store.get(key)
        if raw is None:
            return default()
        try:
            return parse(json.loads(raw))
        except ValueError:
            logger.exception("storage_read_failed", extra={"component": "tabibito", "key": key})
            return default()

    async def write(self, key: str, payload: Any) -> None:
        try:
            encoded = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"cannot encode value for {key}") from exc
        try:
            await self._store.set(key, encoded)
        except Exception as exc:
            raise StorageError(f"cannot write {key}") from exc

    async def remove(self, *keys: str) -> None:
        try:
            if len(keys) == 1:
                await self._store.remove(keys[0])
            else:
                await self._store.multi_remove(list(keys))
        except Exception as exc:
            raise StorageError(f"cannot remove {', '.join(keys)}") from exc


class LocalRepository:
    def __init__(self, store: KeyValueStore, locks: KeyLocks | None = None) -> None:
        self.records = JsonRecords(store, locks)

    async def save_user_profile(self, user: User) -> None:
        await self.records.write(StorageKeys.USER_PROFILE, user.to_json_dict())

    async def get_user_profile(self) -> User | None:
        return await self.records.read(StorageKeys.USER_PROFILE, User.model_validate, lambda: None)

    async def save_track(self, track_id: str, track: SavedTrack) -> None:
        async with self.records.locks(StorageKeys.SAVED_TRACKS):
            tracks = await self.get_saved_tracks()
            tracks[track_id] = track.model_copy(update={"saved_at": now_jst_iso()})
            await self._write_tracks(tracks)
        logger.info("track_saved", extra={"component": "tabibito", "track_id": track_id})

    async def get_saved_tracks(self) -> dict[str, SavedTrack]:
        return await self.records.read(StorageKeys.SAVED_TRACKS, _TRACKS.validate_python, dict)

    async def delete_track(self, track_id: str) -> None:
        async with self.records.locks(StorageKeys.SAVED_TRACKS):
            tracks = await self.get_saved_tracks()
            if tracks.pop(track_id, None) is None:
                return
            await self._write_tracks(tracks)

    async def save_post(self, post: Post) -> None:
        async with self.records.locks(StorageKeys.SAVED_POSTS):
            posts = await self.get_saved_posts()
            posts.append(post.model_copy(update={"saved_at": now_jst_iso()}))
            await self.records.write(StorageKeys.SAVED_POSTS, [item.to_json_dict() for item in posts])
        logger.info("post_saved", extra={"component": "tabibito", "post_id": post.id})

    async def get_saved_posts(self) -> list[Post]:
        return await self.records.read(StorageKeys.SAVED_POSTS, _POSTS.validate_python, list)

    async def save_following_users(self, user_ids: Iterable[str]) -> None:
        await self.records.write(StorageKeys.FOLLOWING_USERS, list(user_ids))

    async def get_following_users(self) -> list[str]:
        return await self.records.read(StorageKeys.FOLLOWING_USERS, _USER_IDS.validate_python, list)

    async def follow_user(self, user_id: str) -> list[str]:
        async with self.records.locks(StorageKeys.FOLLOWING_USERS):
            following = await self.get_following_users()
            if user_id not in following:
                following.append(user_id)
                await self.save_following_users(following)
            return following

    async def unfollow_user(self, user_id: str) -> list[str]:
        async with self.records.locks(StorageKeys.FOLLOWING_USERS):
            following = await self.get_following_users()
            if user_id in following:
                following = [item for item in following if item != user_id]
                await self.save_following_users(following)
            return following

    async def save_favorite_spot(self, spot: Spot) -> bool:
        async with self.records.locks(StorageKeys.FAVORITE_SPOTS):
            spots = await self.get_favorite_spots()
            if any(item.id == spot.id for item in spots):
                return False
            spots.append(spot.model_copy(update={"saved_at": now_jst_iso()}))
            await self._write_spots(spots)
            return True

    async def get_favorite_spots(self) -> list[Spot]:
        return await self.records.read(StorageKeys.FAVORITE_SPOTS, _SPOTS.validate_python, list)

    async def remove_favorite_spot(self, spot_id: str) -> None:
        async with self.records.locks(StorageKeys.FAVORITE_SPOTS):
            spots = await self.get_favorite_spots()
            await self._write_spots([item for item in spots if item.id != spot_id])

    async def save_user_settings(self, settings: UserSettings) -> None:
        await self.records.write(StorageKeys.USER_SETTINGS, settings.to_json_dict())

    async def get_user_settings(self) -> UserSettings:
        return await self.records.read(StorageKeys.USER_SETTINGS, UserSettings.model_validate, UserSettings)

    async def clear_all_data(self) -> None:
        async with self.records.locks.hold(*StorageKeys.CONTENT):
            await self.records.remove(*StorageKeys.CONTENT)
        logger.info("storage_cleared", extra={"component": "tabibito"})

    async def export_all_data(self) -> str:
        profile = await self.get_user_profile()
        tracks = await self.get_saved_tracks()
        snapshot = {
            "userProfile": profile.to_json_dict() if profile else None,
            "savedTracks": {track_id: track.to_json_dict() for track_id, track in tracks.items()},
            "savedPosts": [post.to_json_dict() for post in await self.get_saved_posts()],
            "followingUsers": await self.get_following_users(),
            "favoriteSpots": [spot.to_json_dict() for spot in await self.get_favorite_spots()],
            "userSettings": (await self.get_user_settings()).to_json_dict(),
            "exportedAt": now_jst_iso(),
        }
        return json.dumps(snapshot, ensure_ascii=False, indent=2)

    async def import_all_data(self, json_data: str) -> list[str]:
        """Writes back every field present in the snapshot; absent fields stay as they are.

        The whole snapshot is validated before anything is written, and each
        write holds the lock of the key it replaces.
        """
        try:
            data = json.loads(json_data)
        except ValueError as exc:
            raise StorageError("backup is not valid JSON") from exc
        if not isinstance(data, dict):
            raise StorageError("backup must be a JSON object")

        payloads: dict[str, tuple[str, Any]] = {}
        try:
            if data.get("userProfile") is not None:
                profile = User.model_validate(data["userProfile"])
                payloads["userProfile"] = (StorageKeys.USER_PROFILE, profile.to_json_dict())
            if data.get("savedTracks") is not None:
                tracks = _TRACKS.validate_python(data["savedTracks"])
                payloads["savedTracks"] = (
                    StorageKeys.SAVED_TRACKS,
                    {track_id: track.to_json_dict() for track_id, track in tracks.items()},
                )
            if data.get("savedPosts") is not None:
                posts = _POSTS.validate_python(data["savedPosts"])
                payloads["savedPosts"] = (StorageKeys.SAVED_POSTS, [item.to_json_dict() for item in posts])
            if data.get("followingUsers") is not None:
                payloads["followingUsers"] = (
                    StorageKeys.FOLLOWING_USERS,
                    _USER_IDS.validate_python(data["followingUsers"]),
                )
            if data.get("favoriteSpots") is not None:
                spots = _SPOTS.validate_python(data["favoriteSpots"])
                payloads["favoriteSpots"] = (StorageKeys.FAVORITE_SPOTS, [item.to_json_dict() for item in spots])
            if data.get("userSettings") is not None:
                settings = UserSettings.model_validate(data["userSettings"])
                payloads["userSettings"] = (StorageKeys.USER_SETTINGS, settings.to_json_dict())
        except ValueError as exc:
            raise StorageError("backup contains invalid records") from exc

        for key, payload in payloads.values():
            async with self.records.locks(key):
                await self.records.write(key, payload)
        imported = list(payloads)
        logger.info("storage_imported", extra={"component": "tabibito", "fields": imported})
        return imported

    async def _write_tracks(self, tracks: dict[str, SavedTrack]) -> None:
        payload = {track_id: track.to_json_dict() for track_id, track in tracks.items()}
        await self.records.write(StorageKeys.SAVED_TRACKS, payload)

    async def _write_spots(self, spots: list[Spot]) -> None:
        await self.records.write(StorageKeys.FAVORITE_SPOTS, [item.to_json_dict() for item in spots])


def filter_timeline(
    posts: Iterable[Post],
    region: Region | str = Region.ALL,
    following: Iterable[str] | None = None,
) -> list[Post]:
    region_key = Region(region)
    followed = set(following) if following is not None else None
    return [
        post
        for post in posts
        if (region_key is Region.ALL or post.region is region_key)
        and (followed is None or post.user_id in followed)
    ]
