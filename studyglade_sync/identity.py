"""
Acting-identity resolution.

In remote mode the owner logs in against the API; in local mode (or after a
failed login) the identity comes from the durable "current owner" key. A
default identity is synthesized when nothing else is available, so
resolution never fails.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from .exceptions import StorageIOError
from .id_utils import generate_owner_key
from .local import LocalDurableAdapter
from .remote import RemoteApiClient
from .store.fallback import FallbackPolicy

logger = logging.getLogger(__name__)

CURRENT_OWNER_KEY = "identity.current_owner"


@dataclass
class OwnerIdentity:
    """The acting identity of a session.

    Attributes:
        owner_key: Key used to scope reads and stamp new records
        display_name: Human-readable name
        source: "remote" when the API accepted the login, "local" otherwise
    """

    owner_key: str
    display_name: str
    source: str = "local"

    def to_dict(self) -> dict[str, Any]:
        return {"owner_key": self.owner_key, "display_name": self.display_name}

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "local") -> OwnerIdentity:
        owner_key = str(data["owner_key"])
        return cls(
            owner_key=owner_key,
            display_name=str(data.get("display_name") or owner_key),
            source=source,
        )


class IdentityResolver:
    """Resolves the session identity once and caches it."""

    def __init__(
        self,
        adapter: LocalDurableAdapter,
        policy: FallbackPolicy,
        remote: RemoteApiClient | None = None,
    ) -> None:
        self.adapter = adapter
        self.policy = policy
        self.remote = remote
        self._identity: OwnerIdentity | None = None

    @property
    def current(self) -> OwnerIdentity | None:
        return self._identity

    async def resolve(self, owner_key: str | None = None) -> OwnerIdentity:
        """Resolve or create the acting identity.

        Args:
            owner_key: Requested owner; None reuses the stored or cached one
        """
        if self._identity is not None and owner_key in (None, self._identity.owner_key):
            return self._identity

        stored = await self._read_stored()
        if owner_key is None:
            owner_key = stored.owner_key if stored else generate_owner_key()
        display_name = (
            stored.display_name if stored and stored.owner_key == owner_key else owner_key
        )
        requested = OwnerIdentity(owner_key=owner_key, display_name=display_name)

        async def local_identity() -> OwnerIdentity:
            return requested

        remote = self.remote
        if remote is None:
            identity = requested
        else:

            async def remote_login() -> OwnerIdentity:
                return await self._login(remote, requested)

            identity = await self.policy.run("initialize", remote_login, local_identity)

        await self._write_stored(identity)
        self._identity = identity
        logger.info(f"Acting as {identity.owner_key} ({identity.source} identity)")
        return identity

    async def _login(self, remote: RemoteApiClient, requested: OwnerIdentity) -> OwnerIdentity:
        if remote.auth_token:
            # A pre-issued token already identifies us
            return OwnerIdentity(requested.owner_key, requested.display_name, source="remote")
        body = await remote.authenticate(requested.owner_key)
        owner_key = str(body.get("owner_key") or requested.owner_key)
        return OwnerIdentity(
            owner_key=owner_key,
            display_name=str(body.get("display_name") or requested.display_name),
            source="remote",
        )

    async def _read_stored(self) -> OwnerIdentity | None:
        try:
            blob = await self.adapter.get(CURRENT_OWNER_KEY)
        except StorageIOError as e:
            logger.warning(f"Could not read stored identity: {e}")
            return None
        if not blob:
            return None
        try:
            return OwnerIdentity.from_dict(json.loads(blob))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable stored identity: {e}")
            return None

    async def _write_stored(self, identity: OwnerIdentity) -> None:
        try:
            await self.adapter.set(CURRENT_OWNER_KEY, json.dumps(identity.to_dict()))
        except StorageIOError as e:
            # The identity still holds for this session
            logger.warning(f"Could not persist current owner: {e}")
