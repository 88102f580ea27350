from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

_configured = False
_logging_configured = False

_MASK = "***"


class _SensitiveFieldFilter(logging.Filter):
    """Masks credential-like attributes passed through ``extra``."""

    def __init__(self, sensitive_fields: tuple[str, ...]) -> None:
        super().__init__()
        self._sensitive_fields = {field.lower() for field in sensitive_fields}

    def _is_sensitive(self, name: str) -> bool:
        lowered = name.lower()
        return any(field in lowered for field in self._sensitive_fields)

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in list(vars(record).items()):
            if value is None or not self._is_sensitive(name):
                continue
            setattr(record, name, _MASK)
        args: Any = getattr(record, "args", None)
        if isinstance(args, dict):
            record.args = {
                key: (_MASK if isinstance(key, str) and self._is_sensitive(key) else value)
                for key, value in args.items()
            }
        return True


def configure_otel(service_name: str) -> None:
    global _configured
    if _configured:
        return
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)
    _configured = True


def configure_logging(
    level: str = "INFO",
    sensitive_fields: tuple[str, ...] = ("password", "token", "secret"),
) -> None:
    global _logging_configured
    if _logging_configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    handler.addFilter(_SensitiveFieldFilter(sensitive_fields=sensitive_fields))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level.upper())
    _logging_configured = True
