from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from opentelemetry import trace

from devkit.config import AppSettings
from devkit.timezone import now_jst
from tabibito.errors import ErrorCode, ErrorHandler, NetworkError, TabibitoError
from tabibito.ids import new_id
from tabibito.models import OfflinePost
from tabibito.retry import with_linear_backoff
from tabibito.storage.outbox import FlushResult, OfflineOutbox

T = TypeVar("T")
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

NETWORK_UNAVAILABLE = "ネットワーク接続がありません"


class ConnectionType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    NONE = "none"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NetworkState:
    is_connected: bool = False
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    is_internet_reachable: bool = False


@dataclass(frozen=True)
class ApiRequest:
    endpoint: str
    method: str = "GET"
    data: Any = None


@dataclass
class ApiResponse(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    timestamp: datetime = field(default_factory=now_jst)


@dataclass(frozen=True)
class OptimalSettings:
    image_quality: float
    video_quality: str
    auto_sync: bool


NetworkListener = Callable[[NetworkState], None]
Transport = Callable[[ApiRequest], Awaitable[Any]]


class SimulatedTransport:
    """Stand-in for a real API: waits, then fails with probability ``failure_rate``."""

    def __init__(
        self,
        *,
        failure_rate: float = 0.2,
        latency_seconds: float = 1.0,
        rng: random.Random | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._failure_rate = failure_rate
        self._latency_seconds = latency_seconds
        self._rng = rng or random.Random()
        self._sleep_fn = sleep_fn

    async def __call__(self, request: ApiRequest) -> dict[str, str]:
        await self._sleep_fn(self._latency_seconds)
        if self._rng.random() < self._failure_rate:
            raise NetworkError(f"API call to {request.endpoint} failed")
        return {"message": f"API call to {request.endpoint} successful"}


class NetworkService:
    def __init__(
        self,
        error_handler: ErrorHandler,
        *,
        transport: Transport | None = None,
        rng: random.Random | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        connectivity_success_rate: float = 0.9,
        upload_failure_rate: float = 0.1,
        upload_latency_seconds: float = 3.0,
        default_timeout_seconds: float = 10.0,
        default_retries: int = 3,
        retry_base_delay_seconds: float = 1.0,
    ) -> None:
        self._error_handler = error_handler
        self._rng = rng or random.Random()
        self._sleep_fn = sleep_fn
        self._transport = transport or SimulatedTransport(rng=self._rng, sleep_fn=sleep_fn)
        self._connectivity_success_rate = connectivity_success_rate
        self._upload_failure_rate = upload_failure_rate
        self._upload_latency_seconds = upload_latency_seconds
        self._default_timeout_seconds = default_timeout_seconds
        self._default_retries = default_retries
        self._retry_base_delay_seconds = retry_base_delay_seconds
        self._state = NetworkState()
        self._listeners: list[NetworkListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        error_handler: ErrorHandler,
        *,
        rng: random.Random | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> NetworkService:
        rng = rng or random.Random()
        transport = SimulatedTransport(
            failure_rate=settings.API_FAILURE_RATE,
            latency_seconds=settings.API_SIMULATED_LATENCY_SECONDS,
            rng=rng,
            sleep_fn=sleep_fn,
        )
        return cls(
            error_handler,
            transport=transport,
            rng=rng,
            sleep_fn=sleep_fn,
            connectivity_success_rate=settings.CONNECTIVITY_SUCCESS_RATE,
            upload_failure_rate=settings.UPLOAD_FAILURE_RATE,
            default_timeout_seconds=settings.API_TIMEOUT_SECONDS,
            default_retries=settings.RETRY_MAX_ATTEMPTS,
            retry_base_delay_seconds=settings.RETRY_BASE_DELAY_SECONDS,
        )

    async def initialize(self) -> None:
        self._state = NetworkState(
            is_connected=True,
            connection_type=ConnectionType.WIFI,
            is_internet_reachable=True,
        )
        logger.info(
            "network_initialized",
            extra={"component": "tabibito", "connection_type": self._state.connection_type.value},
        )

    def get_network_state(self) -> NetworkState:
        return self._state

    def add_network_listener(self, listener: NetworkListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _dispose

    async def check_connection(self) -> bool:
        is_connected = self._rng.random() < self._connectivity_success_rate
        self._update_state(is_connected=is_connected, is_internet_reachable=is_connected)
        return is_connected

    def _update_state(self, **changes: Any) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        logger.info(
            "network_state_changed",
            extra={"component": "tabibito", "is_connected": new_state.is_connected},
        )
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("network_listener_failed", extra={"component": "tabibito"})

    async def api_call(
        self,
        endpoint: str,
        method: str = "GET",
        data: Any = None,
        *,
        timeout: float | None = None,
        retries: int | None = None,
        require_connection: bool = True,
    ) -> ApiResponse[Any]:
        context = f"API call to {endpoint}"
        if require_connection and not self._state.is_connected:
            return self._failure(NetworkError(NETWORK_UNAVAILABLE), context)

        max_attempts = retries if retries is not None else self._default_retries
        if max_attempts < 1:
            return self._failure(NetworkError(f"{context} was not attempted: retries={max_attempts}"), context)

        request = ApiRequest(endpoint=endpoint, method=method.upper(), data=data)
        timeout_seconds = timeout if timeout is not None else self._default_timeout_seconds

        async def _attempt() -> Any:
            try:
                return await asyncio.wait_for(self._transport(request), timeout=timeout_seconds)
            except asyncio.TimeoutError as exc:
                raise NetworkError(f"{request.method} {endpoint} timed out after {timeout_seconds}s") from exc

        with tracer.start_as_current_span("tabibito.api_call") as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("tabibito.endpoint", endpoint)
            try:
                result = await with_linear_backoff(
                    _attempt,
                    max_attempts=max_attempts,
                    base_delay_seconds=self._retry_base_delay_seconds,
                    context=context,
                    sleep_fn=self._sleep_fn,
                )
            except TabibitoError as exc:
                span.set_attribute("tabibito.success", False)
                return self._failure(exc, context)
            span.set_attribute("tabibito.success", True)
        return ApiResponse(success=True, data=result)

    async def batch_request(self, requests: Sequence[ApiRequest]) -> ApiResponse[list[Any]]:
        if not self._state.is_connected:
            return self._failure(NetworkError(NETWORK_UNAVAILABLE), "NetworkService.batch_request")

        logger.info("batch_request_started", extra={"component": "tabibito", "count": len(requests)})
        outcomes = await asyncio.gather(
            *(
                self.api_call(request.endpoint, request.method, request.data, require_connection=False)
                for request in requests
            ),
            return_exceptions=True,
        )
        successful = [
            outcome.data for outcome in outcomes if isinstance(outcome, ApiResponse) and outcome.success
        ]
        failed_count = len(outcomes) - len(successful)
        if failed_count:
            logger.warning(
                "batch_request_partial_failure",
                extra={"component": "tabibito", "failed": failed_count, "total": len(requests)},
            )
        return ApiResponse(
            success=len(successful) > 0,
            data=successful,
            error=f"{failed_count}件のリクエストが失敗しました" if failed_count else None,
            error_code=ErrorCode.NETWORK if failed_count else None,
        )

    async def upload_image(self, image_uri: str) -> ApiResponse[dict[str, str]]:
        context = "NetworkService.upload_image"
        if not self._state.is_connected:
            return self._failure(NetworkError(NETWORK_UNAVAILABLE), context)
        logger.info("image_upload_started", extra={"component": "tabibito", "image_uri": image_uri})
        await self._sleep_fn(self._upload_latency_seconds)
        if self._rng.random() < self._upload_failure_rate:
            return self._failure(NetworkError("Image upload failed"), context)
        return ApiResponse(success=True, data={"url": f"https://example.com/images/{new_id('image')}.jpg"})

    async def sync_offline_data(self, outbox: OfflineOutbox) -> FlushResult | None:
        """Pushes queued offline posts; returns ``None`` when offline and nothing was tried."""
        if not self._state.is_connected:
            logger.info("offline_sync_skipped", extra={"component": "tabibito"})
            return None

        async def _send(offline_post: OfflinePost) -> bool:
            response = await self.api_call("/posts", "POST", offline_post.to_draft().to_json_dict())
            return response.success

        return await outbox.flush(_send)

    def get_connection_message(self) -> str:
        state = self._state
        if not state.is_connected:
            return "オフライン"
        if not state.is_internet_reachable:
            return "インターネットに接続されていません"
        if state.connection_type is ConnectionType.WIFI:
            return "Wi-Fi接続"
        if state.connection_type is ConnectionType.CELLULAR:
            return "モバイル回線"
        return "オンライン"

    def get_optimal_settings(self) -> OptimalSettings:
        connection_type = self._state.connection_type
        if connection_type is ConnectionType.WIFI:
            return OptimalSettings(image_quality=0.9, video_quality="high", auto_sync=True)
        if connection_type is ConnectionType.CELLULAR:
            return OptimalSettings(image_quality=0.7, video_quality="medium", auto_sync=False)
        return OptimalSettings(image_quality=0.5, video_quality="low", auto_sync=False)

    def _failure(self, exc: BaseException, context: str) -> ApiResponse[Any]:
        app_error = self._error_handler.handle(exc, context)
        return ApiResponse(success=False, error=app_error.message, error_code=app_error.code)
