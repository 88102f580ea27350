"""Local-first data layer for the Hokkaido Tabibito travel app."""

from tabibito.auth import AuthService, SessionState
from tabibito.catalog import get_post_type_info, get_region_info, get_spot_category_info
from tabibito.context import AppContext, build_app_context
from tabibito.errors import (
    AppError,
    AuthError,
    ErrorCode,
    ErrorHandler,
    LocationError,
    NetworkError,
    RetryExhaustedError,
    StorageError,
    TabibitoError,
    ValidationError,
)
from tabibito.network import ApiRequest, ApiResponse, NetworkService, NetworkState
from tabibito.posting import PostInput, PostingService
from tabibito.retry import with_linear_backoff
from tabibito.storage import LocalRepository, OfflineOutbox, create_key_value_store
from tabibito.tracks import TrackRecorder, summarize_track

__all__ = [
    "ApiRequest",
    "ApiResponse",
    "AppContext",
    "AppError",
    "AuthError",
    "AuthService",
    "ErrorCode",
    "ErrorHandler",
    "LocalRepository",
    "LocationError",
    "NetworkError",
    "NetworkService",
    "NetworkState",
    "OfflineOutbox",
    "PostInput",
    "PostingService",
    "RetryExhaustedError",
    "SessionState",
    "StorageError",
    "TabibitoError",
    "TrackRecorder",
    "ValidationError",
    "build_app_context",
    "create_key_value_store",
    "get_post_type_info",
    "get_region_info",
    "get_spot_category_info",
    "summarize_track",
    "with_linear_backoff",
]
