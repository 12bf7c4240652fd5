from __future__ import annotations

import logging
import logging.config
from contextvars import ContextVar
from typing import Any, Optional

from pythonjsonlogger import jsonlogger


request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
realm_id_ctx: ContextVar[Optional[str]] = ContextVar("realm_id", default=None)
resource_ctx: ContextVar[Optional[str]] = ContextVar("resource", default=None)
operation_ctx: ContextVar[Optional[str]] = ContextVar("operation", default=None)
item_index_ctx: ContextVar[Optional[int]] = ContextVar("item_index", default=None)


class ActionContextFilter(logging.Filter):
    """Injects the current request and action context into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Explicit `extra` values win over the ambient context.
        record.__dict__.setdefault("request_id", request_id_ctx.get())
        record.__dict__.setdefault("realm_id", realm_id_ctx.get())
        record.__dict__.setdefault("resource", resource_ctx.get())
        record.__dict__.setdefault("operation", operation_ctx.get())
        record.__dict__.setdefault("item_index", item_index_ctx.get())
        return True


def configure_logging(level: int = logging.INFO) -> None:
    """Configure JSON structured logging."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "action_context": {
                    "()": ActionContextFilter,
                }
            },
            "formatters": {
                "json": {
                    "()": jsonlogger.JsonFormatter,
                    "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "level": level,
                    "formatter": "json",
                    "filters": ["action_context"],
                }
            },
            "loggers": {
                "": {
                    "handlers": ["default"],
                    "level": level,
                }
            },
        }
    )


def set_request_context(request_id: Optional[str] = None, realm_id: Optional[str] = None) -> None:
    if request_id is not None:
        request_id_ctx.set(request_id)
    if realm_id is not None:
        realm_id_ctx.set(realm_id)


def set_action_context(
    *,
    resource: Optional[str] = None,
    operation: Optional[str] = None,
    item_index: Optional[int] = None,
) -> None:
    if resource is not None:
        resource_ctx.set(resource)
    if operation is not None:
        operation_ctx.set(operation)
    if item_index is not None:
        item_index_ctx.set(item_index)


def clear_action_context() -> None:
    resource_ctx.set(None)
    operation_ctx.set(None)
    item_index_ctx.set(None)


def clear_request_context() -> None:
    request_id_ctx.set(None)
    realm_id_ctx.set(None)
    clear_action_context()


_SENSITIVE_KEYS = (
    "authorization",
    "access_token",
    "refresh_token",
    "token",
    "secret",
    "password",
)

# SyncToken is a revision marker, not a credential.
_SAFE_KEYS = frozenset({"synctoken"})


def sanitize_payload(payload: Any) -> Any:
    """Remove obvious secrets from a payload while keeping business fields."""

    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            sanitized: dict[str, Any] = {}
            for key, val in value.items():
                key_lower = str(key).lower()
                if key_lower not in _SAFE_KEYS and any(token in key_lower for token in _SENSITIVE_KEYS):
                    sanitized[key] = "" if val is None else "***redacted***"
                else:
                    sanitized[key] = _sanitize(val)
            return sanitized
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    return _sanitize(payload)


def log_action_started(*, resource: str, operation: str, item_index: int) -> None:
    logger = logging.getLogger("qbo_actions.action")
    logger.info(
        "qbo_action_started",
        extra={
            "event": "qbo_action_started",
            "request_id": request_id_ctx.get(),
            "realm_id": realm_id_ctx.get(),
            "resource": resource,
            "operation": operation,
            "item_index": item_index,
        },
    )


def log_action_finished(
    *,
    resource: str,
    operation: str,
    item_index: int,
    latency_ms: Optional[float],
    result: str,
    record_count: int = 0,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    logger = logging.getLogger("qbo_actions.action")
    logger.info(
        "qbo_action_finished",
        extra={
            "event": "qbo_action_finished",
            "request_id": request_id_ctx.get(),
            "realm_id": realm_id_ctx.get(),
            "resource": resource,
            "operation": operation,
            "item_index": item_index,
            "latency_ms": None if latency_ms is None else round(latency_ms, 2),
            "result": result,
            "record_count": record_count,
            "error_code": error_code,
            "error_message": error_message,
        },
    )
