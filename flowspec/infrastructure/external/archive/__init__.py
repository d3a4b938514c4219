"""Package archive sources."""

from flowspec.infrastructure.external.archive.http_source import HttpArchiveSource

__all__ = ["HttpArchiveSource"]
