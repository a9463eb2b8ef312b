"""
StudyGlade Sync

Dual-mode data synchronization layer for the StudyGlade dashboards.

Provides:
- Synced collections backed by the REST API or durable local storage
- Automatic, one-way fallback from remote to local with a one-time notice
- Owner-scoped reads and read-after-write consistency
- Dashboard command handlers (assignments, payments, answers, documents)

Usage:

    >>> from studyglade_sync import ASSIGNMENTS, StudySession, SyncConfig
    >>> async with await StudySession.create(SyncConfig.from_environment(), "alice") as session:
    ...     store = session.collection(ASSIGNMENTS)
    ...     store.on_fallback(lambda event: print(f"Offline: {event.reason}"))
    ...     await store.load()
    ...     essay = await store.save({"title": "Essay", "amount": 5})
    ...     await store.save({"id": essay.id, "status": "completed"})

Configuration:

    # Remote mode needs the capability flag and a URL
    config = SyncConfig(api_base_url="http://localhost:3001/api", use_backend=True)

    # Or from a YAML settings file with a `sync:` section
    config = SyncConfig.from_settings_file(Path("~/.studyglade/settings.yaml"))
"""

from .config import SyncConfig
from .exceptions import (
    AuthRequiredError,
    InvalidTransitionError,
    PersistenceError,
    RecordNotFoundError,
    StorageIOError,
    StorageQuotaExceededError,
    StudyGladeError,
    TransportError,
    ValidationError,
)
from .identity import IdentityResolver, OwnerIdentity
from .local import LocalBlobRegistry, LocalCollection, LocalDurableAdapter
from .logging_utils import (
    StructuredJsonFormatter,
    SyncLoggerAdapter,
    configure_structured_logging,
    get_sync_logger,
)
from .records import (
    RESERVED_FIELDS,
    Attachment,
    AttachmentFile,
    Record,
    RecordStatus,
    normalize_record_data,
)
from .remote import RemoteApiClient
from .session import StudySession
from .store import (
    ASSIGNMENTS,
    DOCUMENTS,
    TUTOR_ASSIGNMENTS,
    CollectionSpec,
    FallbackEvent,
    FallbackPolicy,
    StoreMode,
    SyncedCollectionStore,
)

__version__ = "0.1.0"

__all__ = [
    # Session
    "StudySession",
    "SyncConfig",
    # Stores
    "SyncedCollectionStore",
    "CollectionSpec",
    "ASSIGNMENTS",
    "TUTOR_ASSIGNMENTS",
    "DOCUMENTS",
    "StoreMode",
    "FallbackPolicy",
    "FallbackEvent",
    # Records
    "Record",
    "RecordStatus",
    "Attachment",
    "AttachmentFile",
    "RESERVED_FIELDS",
    "normalize_record_data",
    # Identity
    "IdentityResolver",
    "OwnerIdentity",
    # Sources
    "RemoteApiClient",
    "LocalDurableAdapter",
    "LocalCollection",
    "LocalBlobRegistry",
    # Logging
    "StructuredJsonFormatter",
    "SyncLoggerAdapter",
    "configure_structured_logging",
    "get_sync_logger",
    # Exceptions
    "StudyGladeError",
    "TransportError",
    "AuthRequiredError",
    "ValidationError",
    "InvalidTransitionError",
    "RecordNotFoundError",
    "StorageIOError",
    "StorageQuotaExceededError",
    "PersistenceError",
]
