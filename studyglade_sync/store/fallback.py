"""
Remote-to-local fallback policy.

Holds the session mode and applies the one-way REMOTE -> LOCAL switch.
Once a remote call fails the session stays local until it is recreated;
there is no retry and no automatic return to remote.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TypeVar

from ..exceptions import AuthRequiredError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreMode(Enum):
    """Which source currently backs the session."""

    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class FallbackEvent:
    """Notification sent once when the session falls back to local mode."""

    operation: str
    reason: str
    auth_required: bool = False
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


FallbackListener = Callable[[FallbackEvent], None]


class FallbackPolicy:
    """Session-wide mode holder shared by every store of a session.

    Example:
        >>> policy = FallbackPolicy(StoreMode.REMOTE)
        >>> unsubscribe = policy.subscribe(lambda event: print(event.reason))
        >>> records = await policy.run("load", remote_load, local_load)
    """

    def __init__(self, initial_mode: StoreMode) -> None:
        self._mode = initial_mode
        self._auth_required = False
        self._last_event: FallbackEvent | None = None
        self._listeners: list[FallbackListener] = []

    @property
    def mode(self) -> StoreMode:
        return self._mode

    @property
    def auth_required(self) -> bool:
        """True when the fallback was caused by the API rejecting our credentials."""
        return self._auth_required

    @property
    def last_event(self) -> FallbackEvent | None:
        return self._last_event

    def subscribe(self, listener: FallbackListener) -> Callable[[], None]:
        """Register a fallback listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def fall_back(self, operation: str, error: TransportError) -> None:
        """Switch to local mode. Only the first call has any effect."""
        if self._mode is StoreMode.LOCAL:
            return

        self._mode = StoreMode.LOCAL
        self._auth_required = isinstance(error, AuthRequiredError)
        event = FallbackEvent(
            operation=operation,
            reason=error.message,
            auth_required=self._auth_required,
        )
        self._last_event = event

        logger.warning(
            f"Remote API unavailable during {operation}, continuing in local mode: {error}",
            extra={"endpoint": error.endpoint, "auth_required": self._auth_required},
        )

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Fallback listener raised: {e}")

    async def run(
        self,
        operation: str,
        remote_call: Callable[[], Awaitable[T]],
        local_call: Callable[[], Awaitable[T]],
    ) -> T:
        """Run against the active source, falling back once on remote failure.

        Errors from the local call propagate unchanged.
        """
        if self._mode is StoreMode.REMOTE:
            try:
                return await remote_call()
            except TransportError as e:
                self.fall_back(operation, e)
        return await local_call()
