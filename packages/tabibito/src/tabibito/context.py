from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from devkit.config import AppSettings
from devkit.observability import configure_logging, configure_otel
from tabibito.auth import AuthService
from tabibito.errors import ErrorHandler
from tabibito.network import NetworkService
from tabibito.posting import PostingService
from tabibito.storage.kv import KeyValueStore, create_key_value_store
from tabibito.storage.outbox import OfflineOutbox
from tabibito.storage.repository import KeyLocks, LocalRepository
from tabibito.tracks import TrackRecorder

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Owns every stateful service of one running app instance."""

    settings: AppSettings
    store: KeyValueStore
    repository: LocalRepository
    outbox: OfflineOutbox
    error_handler: ErrorHandler
    network: NetworkService
    auth: AuthService
    posting: PostingService

    def track_recorder(self) -> TrackRecorder:
        return TrackRecorder(self.repository)

    async def start(self) -> None:
        configure_logging(self.settings.LOG_LEVEL)
        configure_otel(self.settings.APP_NAME)
        await self.network.initialize()
        logger.info("app_context_started", extra={"component": "tabibito", "app_name": self.settings.APP_NAME})

    async def close(self) -> None:
        await self.store.close()


def build_app_context(
    settings: AppSettings,
    *,
    store: KeyValueStore | None = None,
    rng: random.Random | None = None,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AppContext:
    store = store or create_key_value_store(settings)
    locks = KeyLocks()
    repository = LocalRepository(store, locks)
    outbox = OfflineOutbox(store, locks)
    error_handler = ErrorHandler(limit=settings.ERROR_LOG_LIMIT)
    network = NetworkService.from_settings(settings, error_handler, rng=rng, sleep_fn=sleep_fn)
    auth = AuthService(repository, session_ttl_days=settings.SESSION_TTL_DAYS)
    posting = PostingService(auth, repository, outbox)
    return AppContext(
        settings=settings,
        store=store,
        repository=repository,
        outbox=outbox,
        error_handler=error_handler,
        network=network,
        auth=auth,
        posting=posting,
    )
