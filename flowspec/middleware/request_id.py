"""Request ID middleware.

Every HTTP request gets an id: the caller's X-Request-ID when it is safe to
log, a fresh UUID otherwise. The id is echoed on the response, stored in
scope["state"] and bound to the request-id contextvar for the duration of
the request, so log records and error bodies carry it. Raw ASGI, so the
webhook's background replay still runs after the response is sent.
"""

import re
import uuid
from collections.abc import Callable

from starlette.datastructures import Headers, MutableHeaders

from flowspec.shared.context import reset_request_id, set_request_id

REQUEST_ID_MAX_LENGTH = 64
_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9_-]{1,%d}" % REQUEST_ID_MAX_LENGTH)


def sanitize_request_id(raw: str | None) -> str:
    """Keep raw when it is a short token of letters, digits, '-' and '_'; else a new UUID."""
    candidate = (raw or "").strip()
    if _SAFE_REQUEST_ID.fullmatch(candidate):
        return candidate
    return str(uuid.uuid4())


def RequestIDMiddleware(app: Callable, header_name: str = "X-Request-ID") -> Callable:
    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        request_id = sanitize_request_id(Headers(scope=scope).get(header_name))
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: dict) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).append(header_name, request_id)
            await send(message)

        token = set_request_id(request_id)
        try:
            await app(scope, receive, send_with_request_id)
        finally:
            reset_request_id(token)

    return asgi_app
