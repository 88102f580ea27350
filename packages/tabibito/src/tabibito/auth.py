from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum

from pydantic import TypeAdapter

from devkit.timezone import now_jst
from tabibito.errors import ValidationError
from tabibito.ids import email_user_id, new_id
from tabibito.models import AuthUser, ExperienceLevel, LoginMethod, Session, TravelStyle, User
from tabibito.storage.repository import LocalRepository, StorageKeys

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_DAYS = 30
MIN_PASSWORD_LENGTH = 6

_BOOL = TypeAdapter(bool)


class SessionState(str, Enum):
    LOGGED_OUT = "logged_out"
    GUEST_SESSION = "guest_session"
    EMAIL_SESSION = "email_session"


class AuthService:
    """Local-only login state.

    There is no credential check against any account store: a session is a
    record with a fixed lifetime, and expiry is enforced when the current user
    is read. Logging out drops the session but keeps the user's content.
    """

    def __init__(
        self,
        repository: LocalRepository,
        *,
        session_ttl_days: int = DEFAULT_SESSION_TTL_DAYS,
        clock: Callable[[], datetime] = now_jst,
    ) -> None:
        self._repository = repository
        self._records = repository.records
        self._session_ttl = timedelta(days=session_ttl_days)
        self._clock = clock

    async def login_as_guest(self, user_name: str) -> AuthUser:
        auth_user = AuthUser(
            id=new_id("guest"),
            email="",
            name=user_name,
            is_authenticated=True,
            login_method=LoginMethod.GUEST,
        )
        await self._start_session(auth_user)
        return auth_user

    async def login_with_email(self, email: str, password: str) -> AuthUser:
        if not email:
            raise ValidationError("メールアドレスとパスワードを入力してください", field="email")
        if not password:
            raise ValidationError("メールアドレスとパスワードを入力してください", field="password")
        auth_user = AuthUser(
            id=email_user_id(email),
            email=email,
            name=email.split("@")[0],
            is_authenticated=True,
            login_method=LoginMethod.EMAIL,
        )
        await self._start_session(auth_user)
        return auth_user

    async def create_account(self, email: str, password: str, name: str) -> AuthUser:
        for field_name, value in (("email", email), ("password", password), ("name", name)):
            if not value:
                raise ValidationError("すべての項目を入力してください", field=field_name)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("パスワードは6文字以上で入力してください", field="password")
        auth_user = AuthUser(
            id=new_id("user"),
            email=email,
            name=name,
            is_authenticated=True,
            login_method=LoginMethod.EMAIL,
        )
        await self._start_session(auth_user)
        return auth_user

    async def logout(self) -> None:
        await self._records.remove(StorageKeys.AUTH_USER, StorageKeys.AUTH_SESSION)
        logger.info("auth_logged_out", extra={"component": "tabibito"})

    async def get_current_user(self) -> AuthUser | None:
        auth_user = await self._records.read(StorageKeys.AUTH_USER, AuthUser.model_validate, lambda: None)
        session = await self.get_session()
        if auth_user is None or session is None:
            return None
        if session.is_expired(self._clock()):
            logger.info("auth_session_expired", extra={"component": "tabibito", "user_id": auth_user.id})
            await self.logout()
            return None
        return auth_user

    async def get_session(self) -> Session | None:
        return await self._records.read(StorageKeys.AUTH_SESSION, Session.model_validate, lambda: None)

    async def is_authenticated(self) -> bool:
        user = await self.get_current_user()
        return bool(user and user.is_authenticated)

    async def get_session_state(self) -> SessionState:
        user = await self.get_current_user()
        if user is None:
            return SessionState.LOGGED_OUT
        if user.login_method is LoginMethod.GUEST:
            return SessionState.GUEST_SESSION
        return SessionState.EMAIL_SESSION

    async def refresh_session(self) -> Session | None:
        if await self.get_current_user() is None:
            return None
        session = self._new_session()
        await self._records.write(StorageKeys.AUTH_SESSION, session.to_json_dict())
        logger.info("auth_session_refreshed", extra={"component": "tabibito"})
        return session

    async def change_password(self, current_password: str, new_password: str) -> None:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("新しいパスワードは6文字以上で入力してください", field="new_password")
        # current_password is not verified: there is no account store.
        logger.info("auth_password_changed", extra={"component": "tabibito"})

    async def delete_account(self) -> None:
        await self.logout()
        await self._repository.clear_all_data()
        logger.info("auth_account_deleted", extra={"component": "tabibito"})

    async def set_auto_login(self, enabled: bool) -> None:
        await self._records.write(StorageKeys.AUTO_LOGIN_ENABLED, enabled)

    async def get_auto_login_setting(self) -> bool:
        return await self._records.read(StorageKeys.AUTO_LOGIN_ENABLED, _BOOL.validate_python, lambda: True)

    async def _start_session(self, auth_user: AuthUser) -> None:
        profile = User(
            id=auth_user.id,
            name=auth_user.name,
            bio="",
            travel_style=[TravelStyle.CAR],
            experience_level=ExperienceLevel.BEGINNER,
            interests=[],
            location_sharing_level=2,
            created_at=self._clock().isoformat(),
        )
        await asyncio.gather(
            self._records.write(StorageKeys.AUTH_USER, auth_user.to_json_dict()),
            self._records.write(StorageKeys.AUTH_SESSION, self._new_session().to_json_dict()),
            self._repository.save_user_profile(profile),
        )
        logger.info(
            "auth_logged_in",
            extra={
                "component": "tabibito",
                "user_id": auth_user.id,
                "login_method": auth_user.login_method.value,
            },
        )

    def _new_session(self) -> Session:
        created_at = self._clock()
        return Session(
            session_id=new_id("session"),
            created_at=created_at,
            expires_at=created_at + self._session_ttl,
        )
