"""Request context management using contextvars.

Holds the request id, the correlation id a client sent and the
authenticated caller, so every log line of a request carries them.

Authorization never reads these values; the caller identity is passed
explicitly into every entitlement and lifecycle call.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def set_user_id(user_id: str | UUID | None) -> None:
    """Record the authenticated caller for log lines."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    correlation_id = correlation_id_var.get()
    if correlation_id:
        context["correlation_id"] = correlation_id

    user_id = user_id_var.get()
    if user_id:
        context["user_id"] = user_id

    return context


def clear_context() -> None:
    """Reset all context variables at the end of a request."""
    request_id_var.set("")
    correlation_id_var.set(None)
    user_id_var.set(None)
