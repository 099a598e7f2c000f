"""Request middleware for context management and logging.

Each request gets a request id (taken from ``X-Request-ID`` or generated)
and keeps the client's ``X-Correlation-ID``; both are echoed back. The
finish line names the matched route template, the caller resolved by
authentication and the course, lesson, enrollment or instructor the
request was about.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from coursehub.core.context import clear_context, set_correlation_id, set_request_id


logger = structlog.get_logger(__name__)

RESOURCE_PARAMS = ("course_id", "lesson_id", "enrollment_id", "instructor_id")


def route_fields(request: Request) -> dict[str, Any]:
    """Log fields describing what a routed request touched.

    Only available once routing has run; before that the dict is empty.
    """
    fields: dict[str, Any] = {}

    route = request.scope.get("route")
    if route is not None:
        fields["route"] = route.path

    user_id = getattr(request.state, "user_id", None)
    if user_id is not None:
        fields["user_id"] = str(user_id)

    for name in RESOURCE_PARAMS:
        value = request.path_params.get(name)
        if value is not None:
            fields[name] = str(value)

    return fields


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request and correlation ids, logs one line per request."""

    REQUEST_ID_HEADER = "X-Request-ID"
    CORRELATION_ID_HEADER = "X-Correlation-ID"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = exclude_paths or ["/health"]

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start_time = time.perf_counter()

        request_id = set_request_id(request.headers.get(self.REQUEST_ID_HEADER))
        correlation_id = request.headers.get(self.CORRELATION_ID_HEADER)
        set_correlation_id(correlation_id)
        request.state.request_id = request_id

        should_log = self.log_requests and not self._should_exclude(request.url.path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
                duration_ms=self._elapsed_ms(start_time),
                **route_fields(request),
            )
            clear_context()
            raise

        if should_log:
            log_method = logger.warning if response.status_code >= 400 else logger.info
            log_method(
                "request_finished",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=self._elapsed_ms(start_time),
                **route_fields(request),
            )
        clear_context()

        response.headers[self.REQUEST_ID_HEADER] = request_id
        if correlation_id:
            response.headers[self.CORRELATION_ID_HEADER] = correlation_id
        return response

    def _should_exclude(self, path: str) -> bool:
        return any(path.startswith(excluded) for excluded in self.exclude_paths)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 2)


__all__ = ["RequestContextMiddleware", "route_fields"]
