# Core infrastructure
from coursehub.core.context import (
    clear_context,
    get_context,
    get_request_id,
    set_correlation_id,
    set_request_id,
    set_user_id,
)
from coursehub.core.errors import EngineError, http_status_for
from coursehub.core.logging import configure_structlog, get_logger
from coursehub.core.middleware import RequestContextMiddleware, route_fields


__all__ = [
    "EngineError",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "http_status_for",
    "route_fields",
    "set_correlation_id",
    "set_request_id",
    "set_user_id",
]
