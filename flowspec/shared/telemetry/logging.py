"""Logging for flowspec: one stdout handler, request id on every record."""

import logging
import sys

from flowspec.core.config import get_settings
from flowspec.shared.context import get_request_id

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

# Client libraries that log every request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio")


class RequestIDFilter(logging.Filter):
    """Stamp record.request_id with the current request's id, or '-' outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def setup_logging() -> None:
    """Configure the root logger from settings.

    DEBUG when settings.debug is on, INFO otherwise. SQL statements are only
    logged when database_echo is set; chatty client libraries stay at WARNING.
    """
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[handler],
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
