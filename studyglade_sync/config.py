"""
Configuration for the sync layer.

Configuration can be provided directly, via environment variables, or via
the ``sync:`` section of a YAML settings file.

Environment Variables:
    STUDYGLADE_API_URL: Base URL of the REST API (e.g. http://localhost:3001/api)
    STUDYGLADE_USE_BACKEND: "true" to start sessions in remote mode
    STUDYGLADE_AUTH_TOKEN: Pre-issued bearer token (skips remote login)
    STUDYGLADE_LOCAL_PATH: Directory for the durable local store
    STUDYGLADE_REQUEST_TIMEOUT: Seconds before a remote call is abandoned
    STUDYGLADE_LOCAL_QUOTA_BYTES: Maximum size of a single stored blob
    STUDYGLADE_LOG_JSON: "true" to emit JSON log lines on stdout
    STUDYGLADE_LOG_LEVEL: Level for the studyglade_sync loggers (default INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_PATH = Path.home() / ".studyglade" / "data"
DEFAULT_REQUEST_TIMEOUT = 15.0


@dataclass
class SyncConfig:
    """Configuration for a sync session.

    Attributes:
        api_base_url: Base URL of the REST API, without trailing slash
        use_backend: Capability flag; remote mode is only tried when set
        auth_token: Bearer token to send; when absent the session logs in
        local_path: Directory for the durable local adapter
        request_timeout: Total timeout for one remote request, in seconds
        local_quota_bytes: Optional cap on the size of one stored blob
        log_json: Route the package loggers through the JSON formatter
        log_level: Level applied when ``log_json`` is set
    """

    api_base_url: str | None = None
    use_backend: bool = False
    auth_token: str | None = None
    local_path: Path | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    local_quota_bytes: int | None = None
    log_json: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.api_base_url:
            self.api_base_url = self.api_base_url.rstrip("/")
        if self.local_path is not None:
            self.local_path = Path(self.local_path).expanduser()

    @property
    def remote_enabled(self) -> bool:
        """True when sessions should start in remote mode."""
        return bool(self.use_backend and self.api_base_url)

    @property
    def resolved_local_path(self) -> Path:
        return self.local_path or DEFAULT_LOCAL_PATH

    @classmethod
    def from_environment(cls) -> SyncConfig:
        """Create configuration from environment variables."""
        quota = os.environ.get("STUDYGLADE_LOCAL_QUOTA_BYTES")
        local_path = os.environ.get("STUDYGLADE_LOCAL_PATH")
        return cls(
            api_base_url=os.environ.get("STUDYGLADE_API_URL"),
            use_backend=os.environ.get("STUDYGLADE_USE_BACKEND", "").lower() == "true",
            auth_token=os.environ.get("STUDYGLADE_AUTH_TOKEN"),
            local_path=Path(local_path) if local_path else None,
            request_timeout=_parse_float(
                os.environ.get("STUDYGLADE_REQUEST_TIMEOUT"), DEFAULT_REQUEST_TIMEOUT
            ),
            local_quota_bytes=int(quota) if quota and quota.isdigit() else None,
            log_json=os.environ.get("STUDYGLADE_LOG_JSON", "").lower() == "true",
            log_level=os.environ.get("STUDYGLADE_LOG_LEVEL") or "INFO",
        )

    @classmethod
    def from_settings_file(cls, path: Path) -> SyncConfig:
        """Create configuration from the ``sync:`` section of a YAML file.

        A missing or unreadable file yields the defaults.

        ```yaml
        sync:
          api_base_url: "http://localhost:3001/api"
          use_backend: true
          local_path: "~/.studyglade/data"
          request_timeout: 10
          log_json: true
        ```
        """
        settings = _load_yaml(path).get("sync") or {}
        if not isinstance(settings, dict):
            logger.warning(f"Ignoring malformed sync section in {path}")
            settings = {}
        local_path = settings.get("local_path")
        quota = settings.get("local_quota_bytes")
        return cls(
            api_base_url=settings.get("api_base_url"),
            use_backend=bool(settings.get("use_backend", False)),
            auth_token=settings.get("auth_token"),
            local_path=Path(local_path) if local_path else None,
            request_timeout=_parse_float(settings.get("request_timeout"), DEFAULT_REQUEST_TIMEOUT),
            local_quota_bytes=int(quota) if quota is not None else None,
            log_json=bool(settings.get("log_json", False)),
            log_level=str(settings.get("log_level") or "INFO"),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings file {path}: top level is not a mapping")
        return {}
    return data


def _parse_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
