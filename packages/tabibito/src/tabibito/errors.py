from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from devkit.timezone import now_jst

logger = logging.getLogger(__name__)

DEFAULT_ERROR_LOG_LIMIT = 100


class ErrorCode(str, Enum):
    NETWORK = "NETWORK_ERROR"
    LOCATION = "LOCATION_ERROR"
    STORAGE = "STORAGE_ERROR"
    AUTH = "AUTH_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.NETWORK: "ネットワーク接続に問題があります。インターネット接続を確認してください。",
    ErrorCode.LOCATION: "位置情報の取得に失敗しました。設定で位置情報の使用を許可してください。",
    ErrorCode.STORAGE: "データの保存に失敗しました。ストレージの空き容量を確認してください。",
    ErrorCode.AUTH: "認証に失敗しました。もう一度ログインしてください。",
    ErrorCode.VALIDATION: "入力内容に問題があります。内容を確認してください。",
    ErrorCode.UNKNOWN: "予期しないエラーが発生しました。時間を置いて再度お試しください。",
}

FATAL_MESSAGE = "アプリで重大な問題が発生しました。アプリを再起動してください。"


class TabibitoError(Exception):
    """Base error. Subclasses fix ``code`` so classification never inspects message text."""

    code: ErrorCode = ErrorCode.UNKNOWN


class NetworkError(TabibitoError):
    code = ErrorCode.NETWORK


class RetryExhaustedError(TabibitoError):
    """Raised when every retry attempt failed. Carries the code of the last error."""

    def __init__(self, message: str, *, attempts: int, last_error: BaseException) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
        self.code = classify(last_error)


class LocationError(TabibitoError):
    code = ErrorCode.LOCATION


class StorageError(TabibitoError):
    code = ErrorCode.STORAGE


class AuthError(TabibitoError):
    code = ErrorCode.AUTH


class ValidationError(TabibitoError):
    code = ErrorCode.VALIDATION

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


def classify(exc: BaseException) -> ErrorCode:
    if isinstance(exc, TabibitoError):
        return exc.code
    return ErrorCode.UNKNOWN


@dataclass(frozen=True)
class AppError:
    code: ErrorCode
    message: str
    context: str
    details: str
    timestamp: datetime = field(default_factory=now_jst)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class FatalErrorReport:
    error: AppError
    message: str = FATAL_MESSAGE

    @property
    def detail_text(self) -> str:
        return f"コード: {self.error.code.value}\n時刻: {self.error.timestamp.isoformat()}"


def user_message(code: ErrorCode) -> str:
    return USER_MESSAGES[code]


class ErrorHandler:
    """Classifies errors and keeps a rolling in-memory log of the most recent ones."""

    def __init__(self, limit: int = DEFAULT_ERROR_LOG_LIMIT) -> None:
        self._log: deque[AppError] = deque(maxlen=limit)

    def handle(self, exc: BaseException, context: str | None = None) -> AppError:
        code = classify(exc)
        if isinstance(exc, ValidationError) and exc.field:
            message = str(exc)
        else:
            message = user_message(code)
        app_error = AppError(
            code=code,
            message=message,
            context=context or "unknown",
            details=repr(exc),
        )
        self._log.append(app_error)
        logger.error(
            "error_handled",
            extra={"component": "tabibito", "error_code": code.value, "error_context": app_error.context},
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return app_error

    def handle_fatal_error(self, exc: BaseException, context: str | None = None) -> FatalErrorReport:
        report = FatalErrorReport(error=self.handle(exc, context))
        logger.critical(
            "fatal_error",
            extra={"component": "tabibito", "error_code": report.error.code.value},
        )
        return report

    def get_error_log(self) -> list[AppError]:
        return list(self._log)

    def clear_error_log(self) -> None:
        self._log.clear()

    def get_error_stats(self) -> dict[str, int]:
        return dict(Counter(item.code.value for item in self._log))

    def get_debug_info(self) -> dict[str, Any]:
        recent = list(self._log)[-10:]
        return {
            "total_errors": len(self._log),
            "stats": self.get_error_stats(),
            "recent_errors": [item.to_dict() for item in recent],
        }
