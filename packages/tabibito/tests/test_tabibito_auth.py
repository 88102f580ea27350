from __future__ import annotations

import json
from datetime import datetime, timedelta

import pytest

from devkit.timezone import JST_ZONE
from tabibito.auth import AuthService, SessionState
from tabibito.errors import ValidationError
from tabibito.models import ExperienceLevel, LoginMethod, Post, TravelStyle
from tabibito.storage.kv import InMemoryKeyValueStore
from tabibito.storage.repository import LocalRepository, StorageKeys


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 7, 1, 9, 0, tzinfo=JST_ZONE)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _build(clock: FakeClock | None = None) -> tuple[AuthService, LocalRepository, InMemoryKeyValueStore]:
    store = InMemoryKeyValueStore()
    repository = LocalRepository(store)
    auth = AuthService(repository, clock=clock or FakeClock())
    return auth, repository, store


def _post(user_id: str) -> Post:
    return Post(
        id="post_1",
        user_id=user_id,
        content="美瑛の丘",
        created_at="2026-07-01T09:00:00+09:00",
        updated_at="2026-07-01T09:00:00+09:00",
    )


@pytest.mark.asyncio
async def test_guest_login_creates_default_profile() -> None:
    auth, repository, _ = _build()
    user = await auth.login_as_guest("ゲスト1234")

    assert user.id.startswith("guest_")
    assert user.login_method is LoginMethod.GUEST
    profile = await repository.get_user_profile()
    assert profile is not None
    assert profile.id == user.id
    assert profile.name == "ゲスト1234"
    assert profile.experience_level is ExperienceLevel.BEGINNER
    assert profile.interests == []
    assert profile.travel_style == [TravelStyle.CAR]
    assert profile.bio == ""
    assert await auth.get_session_state() is SessionState.GUEST_SESSION


@pytest.mark.asyncio
async def test_create_account_then_current_user_has_thirty_day_session() -> None:
    auth, _, _ = _build()
    created = await auth.create_account("hanako@example.jp", "secret1", "Hanako")

    current = await auth.get_current_user()
    assert current == created
    assert current.name == "Hanako"
    assert current.is_authenticated is True
    session = await auth.get_session()
    assert session.expires_at - session.created_at == timedelta(days=30)
    assert await auth.get_session_state() is SessionState.EMAIL_SESSION


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("email", "password", "name", "field"),
    [
        ("", "secret1", "Hanako", "email"),
        ("hanako@example.jp", "", "Hanako", "password"),
        ("hanako@example.jp", "secret1", "", "name"),
        ("hanako@example.jp", "12345", "Hanako", "password"),
    ],
)
async def test_create_account_validation(email: str, password: str, name: str, field: str) -> None:
    auth, _, store = _build()
    with pytest.raises(ValidationError) as exc_info:
        await auth.create_account(email, password, name)
    assert exc_info.value.field == field
    assert store.keys() == []


@pytest.mark.asyncio
async def test_email_login_derives_id_from_email() -> None:
    auth, _, _ = _build()
    user = await auth.login_with_email("taro.yamada@example.jp", "anything")

    assert user.id == "user_taro_yamada_example.jp"
    assert user.name == "taro.yamada"
    again = await auth.login_with_email("taro.yamada@example.jp", "other")
    assert again.id == user.id


@pytest.mark.asyncio
async def test_email_login_requires_both_fields() -> None:
    auth, _, _ = _build()
    with pytest.raises(ValidationError):
        await auth.login_with_email("taro@example.jp", "")
    with pytest.raises(ValidationError):
        await auth.login_with_email("", "password")
    assert await auth.get_current_user() is None


@pytest.mark.asyncio
async def test_expired_session_logs_out_on_read() -> None:
    clock = FakeClock()
    auth, _, store = _build(clock)
    await auth.login_as_guest("ゲスト")

    clock.advance(days=30, seconds=1)

    assert await auth.get_current_user() is None
    assert await store.get(StorageKeys.AUTH_USER) is None
    assert await store.get(StorageKeys.AUTH_SESSION) is None
    assert await auth.get_session_state() is SessionState.LOGGED_OUT


@pytest.mark.asyncio
async def test_unreadable_session_expiry_reads_as_logged_out() -> None:
    auth, _, store = _build()
    await auth.login_as_guest("ゲスト")
    stored = json.loads(await store.get(StorageKeys.AUTH_SESSION))
    stored["expiresAt"] = "not-a-date"
    await store.set(StorageKeys.AUTH_SESSION, json.dumps(stored))

    assert await auth.get_current_user() is None
    assert await auth.is_authenticated() is False
    assert await auth.get_session_state() is SessionState.LOGGED_OUT
    assert await auth.refresh_session() is None


@pytest.mark.asyncio
async def test_session_still_valid_just_before_expiry() -> None:
    clock = FakeClock()
    auth, _, _ = _build(clock)
    await auth.login_as_guest("ゲスト")

    clock.advance(days=29, hours=23)
    assert await auth.is_authenticated() is True


@pytest.mark.asyncio
async def test_logout_keeps_content_delete_account_removes_it() -> None:
    auth, repository, _ = _build()
    user = await auth.login_as_guest("ゲスト")
    await repository.save_post(_post(user.id))

    await auth.logout()
    assert await auth.get_current_user() is None
    assert await repository.get_user_profile() is not None
    assert len(await repository.get_saved_posts()) == 1

    await auth.login_as_guest("ゲスト")
    await auth.delete_account()
    assert await auth.get_current_user() is None
    assert await repository.get_user_profile() is None
    assert await repository.get_saved_posts() == []


@pytest.mark.asyncio
async def test_refresh_session_extends_expiry() -> None:
    clock = FakeClock()
    auth, _, _ = _build(clock)
    await auth.login_as_guest("ゲスト")
    original = await auth.get_session()

    clock.advance(days=10)
    refreshed = await auth.refresh_session()

    assert refreshed is not None
    assert refreshed.session_id != original.session_id
    assert refreshed.expires_at == clock.now + timedelta(days=30)
    assert await auth.get_session() == refreshed


@pytest.mark.asyncio
async def test_refresh_session_is_noop_when_logged_out() -> None:
    auth, _, store = _build()
    assert await auth.refresh_session() is None
    assert store.keys() == []


@pytest.mark.asyncio
async def test_change_password_checks_length() -> None:
    auth, _, _ = _build()
    with pytest.raises(ValidationError) as exc_info:
        await auth.change_password("secret1", "short")
    assert exc_info.value.field == "new_password"
    await auth.change_password("secret1", "longer-secret")


@pytest.mark.asyncio
async def test_auto_login_setting_defaults_to_enabled() -> None:
    auth, _, _ = _build()
    assert await auth.get_auto_login_setting() is True

    await auth.set_auto_login(False)
    assert await auth.get_auto_login_setting() is False
