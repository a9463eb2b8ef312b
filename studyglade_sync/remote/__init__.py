"""Remote REST API client."""

from .client import RemoteApiClient

__all__ = ["RemoteApiClient"]
