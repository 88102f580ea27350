"""Common runtime devkit for app infrastructure concerns."""

from devkit.config import AppSettings, load_settings
from devkit.observability import configure_logging, configure_otel
from devkit.redis import AsyncRedisManager, create_redis_client
from devkit.timezone import as_jst, configure_process_timezone, from_epoch_millis, now_jst, now_jst_iso, parse_iso

__all__ = [
    "AppSettings",
    "AsyncRedisManager",
    "as_jst",
    "configure_logging",
    "configure_otel",
    "configure_process_timezone",
    "create_redis_client",
    "from_epoch_millis",
    "load_settings",
    "now_jst",
    "now_jst_iso",
    "parse_iso",
]
