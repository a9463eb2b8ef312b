"""
Synced collection stores.

A store presents one collection backed by either the remote API or the
durable local adapter, with a one-way fallback shared across a session.
"""

# fallback first: identity depends on it and collection depends on identity types
from .fallback import FallbackEvent, FallbackListener, FallbackPolicy, StoreMode
from .specs import ASSIGNMENTS, DOCUMENTS, TUTOR_ASSIGNMENTS, CollectionSpec
from .collection import SyncedCollectionStore

__all__ = [
    "ASSIGNMENTS",
    "DOCUMENTS",
    "TUTOR_ASSIGNMENTS",
    "CollectionSpec",
    "FallbackEvent",
    "FallbackListener",
    "FallbackPolicy",
    "StoreMode",
    "SyncedCollectionStore",
]
