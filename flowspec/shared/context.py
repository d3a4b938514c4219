"""Request context using contextvars.

Holds the request ID for the current request so log records emitted
anywhere during that request (including background tasks started from it)
carry the same ID.
"""

from contextvars import ContextVar, Token

_current_request_id: ContextVar[str | None] = ContextVar(
    "current_request_id", default=None
)


def set_request_id(request_id: str | None) -> Token:
    """Set the request ID for this context; returns a token for reset_request_id."""
    return _current_request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    """Restore the request ID that was current before set_request_id."""
    _current_request_id.reset(token)


def get_request_id() -> str | None:
    """Return the request ID for this context, or None outside a request."""
    return _current_request_id.get()
