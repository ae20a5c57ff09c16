"""Request context management using contextvars.

Holds the identifiers that get stamped onto every log line (request id,
user id, quiz session id). Business operations never read the current user
from here; they receive an explicit ``StudentContext`` instead.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
quiz_session_id_var: ContextVar[str | None] = ContextVar(
    "quiz_session_id", default=None
)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context, generating one if missing."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the user ID attached to the current log context."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Attach a user ID to the current log context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    correlation_id_var.set(correlation_id)


def set_quiz_session_id(session_id: str | UUID | None) -> None:
    """Attach a quiz session ID to the current log context."""
    quiz_session_id_var.set(str(session_id) if session_id is not None else None)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    quiz_session_id = quiz_session_id_var.get()
    if quiz_session_id:
        context["quiz_session_id"] = quiz_session_id

    return context


def clear_context() -> None:
    """Clear all context variables at the end of a request."""
    request_id_var.set("")
    user_id_var.set(None)
    correlation_id_var.set(None)
    quiz_session_id_var.set(None)
