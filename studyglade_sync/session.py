"""
Study session.

A session owns every collaborator the stores share: one HTTP client, one
durable adapter, one in-memory blob registry, one fallback policy and one
identity. Build it once and pass it explicitly; there are no module-level
globals.

Usage:

    >>> async with await StudySession.create(SyncConfig.from_environment(), "alice") as session:
    ...     assignments = session.collection(ASSIGNMENTS)
    ...     await assignments.load()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import SyncConfig
from .identity import IdentityResolver, OwnerIdentity
from .local import LocalBlobRegistry, LocalCollection, LocalDurableAdapter
from .logging_utils import configure_structured_logging
from .remote import RemoteApiClient
from .store import CollectionSpec, FallbackListener, FallbackPolicy, StoreMode, SyncedCollectionStore

logger = logging.getLogger(__name__)


class StudySession:
    """Shared state for all synced collections of one user session."""

    def __init__(self, config: SyncConfig) -> None:
        self.config = config
        if config.log_json:
            configure_structured_logging(config.log_level)
        self.remote: RemoteApiClient | None = None
        if config.api_base_url and config.remote_enabled:
            self.remote = RemoteApiClient(
                config.api_base_url,
                auth_token=config.auth_token,
                timeout=config.request_timeout,
            )
        self.adapter = LocalDurableAdapter(config.resolved_local_path, config.local_quota_bytes)
        self.blobs = LocalBlobRegistry()
        self.policy = FallbackPolicy(StoreMode.REMOTE if self.remote else StoreMode.LOCAL)
        self.identity = IdentityResolver(self.adapter, self.policy, self.remote)
        self._stores: dict[CollectionSpec, SyncedCollectionStore] = {}
        # One lock per collection name; several specs can share a collection
        self._write_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    async def create(
        cls,
        config: SyncConfig | None = None,
        owner_key: str | None = None,
    ) -> StudySession:
        """Create a session and resolve its identity.

        Args:
            config: Session configuration; read from the environment when None
            owner_key: Acting owner; the stored or a generated one when None
        """
        if config is None:
            config = SyncConfig.from_environment()
        session = cls(config)
        await session.initialize(owner_key)
        return session

    @property
    def mode(self) -> StoreMode:
        return self.policy.mode

    @property
    def auth_required(self) -> bool:
        return self.policy.auth_required

    @property
    def owner(self) -> OwnerIdentity | None:
        return self.identity.current

    async def initialize(self, owner_key: str | None = None) -> OwnerIdentity:
        """Resolve the acting identity. Safe to call again with the same owner."""
        identity = await self.identity.resolve(owner_key)
        logger.debug(f"Session ready in {self.mode.value} mode")
        return identity

    def collection(self, spec: CollectionSpec) -> SyncedCollectionStore:
        """Return the store for a collection, creating it on first use."""
        store = self._stores.get(spec)
        if store is None:
            store = SyncedCollectionStore(
                spec,
                self.policy,
                LocalCollection(self.adapter, spec.name),
                self.blobs,
                self.identity,
                self.remote,
                write_lock=self._write_locks.setdefault(spec.name, asyncio.Lock()),
            )
            self._stores[spec] = store
        return store

    def on_fallback(self, listener: FallbackListener):
        """Subscribe to the one-time fallback notice. Returns an unsubscribe callable."""
        return self.policy.subscribe(listener)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.remote is not None:
            await self.remote.close()

    async def __aenter__(self) -> StudySession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
