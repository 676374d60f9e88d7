from __future__ import annotations

import contextvars
import json as json_mod
import logging
from datetime import UTC, datetime

from github_app_auth.config import LogFormat, Settings, get_settings

# Token request being served, propagated through async context for log tracing.
# Renewal tasks copy the context of the caller that started them.
current_secret: contextvars.ContextVar[str] = contextvars.ContextVar("current_secret", default="")
current_key: contextvars.ContextVar[str] = contextvars.ContextVar("current_key", default="")


class _SecretFilter(logging.Filter):
    """Stamp the secret name and cache key of the current token request on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.secret_name = current_secret.get("")  # type: ignore[attr-defined]
        record.cache_key = current_key.get("")  # type: ignore[attr-defined]
        return True


class _JSONFormatter(logging.Formatter):
    """Minimal JSON log formatter for production use."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        secret = getattr(record, "secret_name", "")
        if secret:
            log_entry["secret_name"] = secret
        cache_key = getattr(record, "cache_key", "")
        if cache_key:
            log_entry["cache_key"] = cache_key
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json_mod.dumps(log_entry)


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    secret_filter = _SecretFilter()
    if settings.log_format == LogFormat.JSON:
        handler = logging.StreamHandler()
        handler.setFormatter(_JSONFormatter())
        handler.addFilter(secret_filter)
        logging.root.handlers = [handler]
        logging.root.setLevel(level)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s [%(secret_name)s|%(cache_key)s]: %(message)s",
        )
        for h in logging.root.handlers:
            h.addFilter(secret_filter)
