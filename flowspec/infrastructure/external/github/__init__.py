"""GitHub code host client."""

from flowspec.infrastructure.external.github.client import GitHubClient

__all__ = ["GitHubClient"]
