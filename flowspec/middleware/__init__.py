"""ASGI middleware."""

from flowspec.middleware.request_id import RequestIDMiddleware

__all__ = ["RequestIDMiddleware"]
