"""Japan Standard Time helpers.

Persisted timestamps are ISO-8601 strings that carry their offset. Naive
values read back from storage are taken to be JST.
"""

from __future__ import annotations

import os
import time
from datetime import datetime
from zoneinfo import ZoneInfo

JST_ZONE = ZoneInfo("Asia/Tokyo")

_configured_zone: str | None = None


def configure_process_timezone(zone_name: str = "Asia/Tokyo") -> None:
    """Sets ``TZ`` for the process. Only the first call has an effect."""
    global _configured_zone
    if _configured_zone is not None:
        return
    os.environ["TZ"] = zone_name
    if hasattr(time, "tzset"):
        time.tzset()
    _configured_zone = zone_name


def as_jst(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=JST_ZONE)
    return value.astimezone(JST_ZONE)


def now_jst() -> datetime:
    return datetime.now(JST_ZONE)


def now_jst_iso() -> str:
    return now_jst().isoformat()


def parse_iso(value: str) -> datetime:
    return as_jst(datetime.fromisoformat(value))


def from_epoch_millis(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp / 1000, tz=JST_ZONE)
